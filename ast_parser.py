import os
import subprocess
import sys

from clang import cindex


if sys.platform == "darwin":
    _LIBRARY_NAMES = ("libclang.dylib",)
    _SYSTEM_CANDIDATES = (
        "/opt/homebrew/opt/llvm/lib/libclang.dylib",
        "/usr/local/opt/llvm/lib/libclang.dylib",
    )
else:
    _LIBRARY_NAMES = ("libclang.so",)
    _SYSTEM_CANDIDATES = ()


def _find_libclang():
    """
    Locate libclang from LIBCLANG_FILE/LIBCLANG_PATH, next to this module
    or in the usual Homebrew prefixes. None leaves the choice to clang.cindex,
    which finds the library bundled with the libclang wheel.
    """
    env_path = os.environ.get("LIBCLANG_FILE") or os.environ.get("LIBCLANG_PATH")
    if env_path:
        if os.path.isdir(env_path):
            for name in _LIBRARY_NAMES:
                candidate = os.path.join(env_path, name)
                if os.path.exists(candidate):
                    return candidate
        elif os.path.exists(env_path):
            return env_path

    here = os.path.abspath(os.path.dirname(__file__))
    for name in _LIBRARY_NAMES:
        for rel in (name, os.path.join("lib", name)):
            candidate = os.path.join(here, rel)
            if os.path.exists(candidate):
                return candidate

    for candidate in _SYSTEM_CANDIDATES:
        if os.path.exists(candidate):
            return candidate

    return None


libclang_path = _find_libclang()
if libclang_path:
    cindex.Config.set_library_file(libclang_path)


class ParseCppError(RuntimeError):
    pass


def _translation_unit_failure_hint(filename):
    base = os.path.basename(filename)
    return (
        f"Could not parse '{base}'. "
        "This usually means severe syntax errors or missing C++ headers/toolchain paths. "
        "Try: clang++ -std=gnu++17 -fsyntax-only <file> to see compiler diagnostics."
    )


def _sdk_args():
    if sys.platform != "darwin":
        return []
    try:
        sdk_path = subprocess.check_output(
            ["xcrun", "--show-sdk-path"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return []
    if not sdk_path:
        return []
    return [
        "-isysroot",
        sdk_path,
        "-I",
        os.path.join(sdk_path, "usr/include/c++/v1"),
    ]


def parse_cpp_file(filename, extra_args=None):
    if not os.path.exists(filename):
        raise ParseCppError(f"Input file does not exist: {filename}")
    if not os.path.isfile(filename):
        raise ParseCppError(f"Input path is not a file: {filename}")

    index = cindex.Index.create()
    args = ["-x", "c++", "-std=gnu++17"] + _sdk_args() + (extra_args or [])

    try:
        return index.parse(filename, args=args)
    except cindex.TranslationUnitLoadError as exc:
        raise ParseCppError(_translation_unit_failure_hint(filename)) from exc
