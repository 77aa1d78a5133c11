import json
import logging
import os
import sys
import time

from clang.cindex import Diagnostic as ClangDiagnostic

from ast_parser import ParseCppError, parse_cpp_file
from ast_walker import walk_ast
from engine_factory import build_engine, resolve_config
from forbidden_rules import ConfigurationError


logger = logging.getLogger(__name__)

USAGE = (
    "Usage: python3 forbid_calls.py [--config FILE.yml] [--rules-file FILE.xml] "
    "[--optional] [--check-constructors] [--text] [--debug] <file.cpp> ..."
)


def _round_ms(value):
    return round(max(0.0, float(value)), 3)


def _clang_items(translation_unit, target_file):
    severity_map = {
        ClangDiagnostic.Ignored: "info",
        ClangDiagnostic.Note: "info",
        ClangDiagnostic.Warning: "warning",
        ClangDiagnostic.Error: "error",
        ClangDiagnostic.Fatal: "error",
    }
    items = []

    for diag in translation_unit.diagnostics:
        loc = diag.location
        loc_file = loc.file.name if loc and loc.file else None
        if loc_file and os.path.realpath(loc_file) != target_file:
            continue

        items.append(
            {
                "severity": severity_map.get(diag.severity, "info"),
                "source": "clang",
                "line": loc.line if loc else None,
                "column": loc.column if loc else None,
                "message": diag.spelling,
            }
        )

    return items


def _rule_item(diagnostic):
    return {
        "severity": "warning",
        "source": "rule",
        "line": diagnostic.line,
        "column": diagnostic.column,
        "message": diagnostic.message,
        "key": diagnostic.key,
        "args": list(diagnostic.args),
        "rule": diagnostic.rule_name,
    }


def _has_blocking_parse_errors(clang_items):
    return any(item.get("severity") == "error" for item in clang_items)


def _limited_analysis_item(first_error_line=None):
    return {
        "severity": "warning",
        "source": "runtime",
        "line": first_error_line if isinstance(first_error_line, int) else None,
        "column": None,
        "message": (
            "Forbidden call checks were skipped because parser errors were found. "
            "Fix parser errors first, then run the check again."
        ),
    }


def _summary(items):
    out = {"error": 0, "warning": 0, "info": 0}
    for item in items:
        sev = item.get("severity", "info")
        if sev not in out:
            sev = "info"
        out[sev] += 1

    out["total"] = out["error"] + out["warning"] + out["info"]
    out["violations"] = sum(1 for item in items if item.get("source") == "rule")
    return out


def _sort_items(items):
    severity_rank = {"error": 0, "warning": 1, "info": 2}
    return sorted(
        items,
        key=lambda i: (
            i.get("line") if isinstance(i.get("line"), int) else 10**9,
            i.get("column") if isinstance(i.get("column"), int) else 0,
            severity_rank.get(i.get("severity", "info"), 3),
            i.get("source", ""),
        ),
    )


def _timing_ms(parse_ms, traversal_ms, interpretation_ms):
    total = parse_ms + traversal_ms + interpretation_ms
    return {
        "parse": _round_ms(parse_ms),
        "traversal": _round_ms(traversal_ms),
        "interpretation": _round_ms(interpretation_ms),
        "total": _round_ms(total),
    }


def _take_value(args, flag):
    """
    Remove `flag VALUE` from args. Returns (args, value); value is None when
    the flag is absent. Raises ValueError when the value is missing.
    """
    if flag not in args:
        return args, None
    idx = args.index(flag)
    if idx + 1 >= len(args):
        raise ValueError(f"Missing value after {flag}.")
    return args[:idx] + args[idx + 2:], args[idx + 1]


def _take_switch(args, flag):
    if flag not in args:
        return args, False
    return [a for a in args if a != flag], True


def _fail(message, json_mode):
    if json_mode:
        print(json.dumps({"ok": False, "error": message}))
    else:
        print(message)
    return 2


def check_file(filename, engine):
    """
    Parse one file and run the engine over it. Returns the result entry.
    """
    display_name = os.path.basename(filename)
    target_file = os.path.realpath(filename)

    parse_start = time.perf_counter()
    try:
        translation_unit = parse_cpp_file(filename)
    except ParseCppError as exc:
        parse_ms = (time.perf_counter() - parse_start) * 1000.0
        message = f"Failed to parse {display_name}: {exc}"
        logger.debug("Parse failure for %s", filename, exc_info=True)
        return {
            "file": display_name,
            "path": target_file,
            "ok": False,
            "error": message,
            "items": [
                {
                    "severity": "error",
                    "source": "runtime",
                    "line": None,
                    "column": None,
                    "message": message,
                }
            ],
            "summary": {"error": 1, "warning": 0, "info": 0, "total": 1, "violations": 0},
            "timing_ms": _timing_ms(parse_ms, 0.0, 0.0),
        }
    parse_ms = (time.perf_counter() - parse_start) * 1000.0

    traversal_start = time.perf_counter()
    nodes = []
    walk_ast(translation_unit.cursor, nodes, target_file=target_file)
    traversal_ms = (time.perf_counter() - traversal_start) * 1000.0

    clang_items = _clang_items(translation_unit, target_file)
    blocking_parse_errors = _has_blocking_parse_errors(clang_items)

    interpretation_ms = 0.0
    rule_items = []
    if not blocking_parse_errors:
        interpretation_start = time.perf_counter()
        diagnostics = engine.run(nodes)
        interpretation_ms = (time.perf_counter() - interpretation_start) * 1000.0
        rule_items = [_rule_item(d) for d in diagnostics]

    combined_items = clang_items + rule_items
    if blocking_parse_errors:
        error_lines = [item.get("line") for item in clang_items if item.get("severity") == "error"]
        first_error_line = min((ln for ln in error_lines if isinstance(ln, int)), default=None)
        combined_items.append(_limited_analysis_item(first_error_line))

    items = _sort_items(combined_items)
    return {
        "file": display_name,
        "path": target_file,
        "ok": True,
        "error": None,
        "items": items,
        "summary": _summary(items),
        "timing_ms": _timing_ms(parse_ms, traversal_ms, interpretation_ms),
    }


def _print_text(result, show_header):
    if show_header:
        print(f"=== {result['file']} ===")
    if not result["ok"]:
        print(result["error"])
        return

    for item in result["items"]:
        severity = item.get("severity")
        if severity not in {"error", "warning"}:
            continue
        prefix = "[ERROR]" if severity == "error" else "[WARN]"
        location_parts = []
        if isinstance(item.get("line"), int):
            location_parts.append(f"line {item['line']}")
        if isinstance(item.get("column"), int):
            location_parts.append(f"column {item['column']}")
        location = f" ({', '.join(location_parts)})" if location_parts else ""
        print(f"{prefix} {item.get('message', '').strip()}{location}")

    timing = result["timing_ms"]
    print(
        f"[timing] parse: {timing['parse']} ms, traversal: {timing['traversal']} ms, "
        f"interpretation: {timing['interpretation']} ms, total: {timing['total']} ms."
    )


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)

    args, text_mode = _take_switch(args, "--text")
    json_mode = not text_mode
    args, debug = _take_switch(args, "--debug")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args, optional = _take_switch(args, "--optional")
    args, check_constructors = _take_switch(args, "--check-constructors")
    try:
        args, config_path = _take_value(args, "--config")
        args, rules_file = _take_value(args, "--rules-file")
    except ValueError as exc:
        return _fail(str(exc), json_mode)

    unknown = [a for a in args if a.startswith("--")]
    if unknown:
        return _fail(f"Unknown option(s): {', '.join(unknown)}. {USAGE}", json_mode)

    files = args
    if not files:
        return _fail(f"No files provided. {USAGE}", json_mode)

    try:
        config = resolve_config(
            config_path=config_path,
            rules_file=rules_file,
            optional=optional,
            check_constructors=check_constructors,
        )
    except ConfigurationError as exc:
        return _fail(f"Configuration error: {exc}", json_mode)

    overall_start = time.perf_counter()
    engine = build_engine(config)
    results = [check_file(filename, engine) for filename in files]

    if json_mode:
        total_ms = _round_ms((time.perf_counter() - overall_start) * 1000.0)
        print(
            json.dumps(
                {
                    "ok": True,
                    "results": results,
                    "timing_ms": {"total": total_ms},
                    "rules": [rule.describe() for rule in config.rules],
                    "check_constructors": config.check_constructors,
                }
            )
        )
        return 0

    for idx, result in enumerate(results):
        _print_text(result, show_header=len(results) > 1)
        if idx < len(results) - 1:
            print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
