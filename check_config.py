"""Forbidden-calls check configuration: parse the YAML file, validate, build rules."""

import logging
import os
from dataclasses import dataclass

import yaml

from forbidden_methods_loader import load_rules_file
from forbidden_rules import ConfigurationError, declarative_rule


logger = logging.getLogger(__name__)

VALID_KEYS = ("checkConstructors", "file", "optional", "rules")


@dataclass(frozen=True)
class CheckConfig:
    """Everything the forbidden-calls rule needs for one run."""

    rules: tuple = ()
    check_constructors: bool = False


def _flag(data, key, source, default=False):
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{source}: '{key}' must be true or false, got {value!r}")
    return value


def load_declarative_rules(rules_data, source="config"):
    """
    Build rules from a list of named rule blocks, keeping their order.

    Each entry is a mapping with 'name' plus the rule attributes.
    """
    if rules_data is None:
        return ()
    if not isinstance(rules_data, list):
        raise ConfigurationError(f"{source}: 'rules' must be a list")

    rules = []
    for idx, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            raise ConfigurationError(f"{source}: rule at index {idx} must be a mapping")
        attributes = dict(rule_data)
        name = attributes.pop("name", None)
        if name is not None and not isinstance(name, str):
            raise ConfigurationError(f"{source}: rule at index {idx} has a non-string 'name'")
        if not name:
            raise ConfigurationError(f"{source}: rule at index {idx} missing required 'name' field")
        rules.append(declarative_rule(name, attributes))

    return tuple(rules)


def build_check_config(data, source="config", base_dir=None):
    """
    Validate an already-parsed configuration mapping.

    Declarative rules come first, followed by the rules of the external file.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source} must be a YAML mapping")

    unknown = sorted(str(key) for key in data if key not in VALID_KEYS)
    if unknown:
        raise ConfigurationError(
            f"{source}: unknown key(s) {', '.join(unknown)}. Valid keys: {', '.join(VALID_KEYS)}."
        )

    check_constructors = _flag(data, "checkConstructors", source)
    optional = _flag(data, "optional", source)

    rules = list(load_declarative_rules(data.get("rules"), source))

    file_ref = data.get("file")
    if file_ref is not None:
        if not isinstance(file_ref, str) or not file_ref:
            raise ConfigurationError(f"{source}: 'file' must be a non-empty string")
        rules.extend(load_rules_file(file_ref, optional=optional, base_dir=base_dir))

    logger.debug(
        "%s: %d rule(s), constructor checking %s",
        source,
        len(rules),
        "on" if check_constructors else "off",
    )
    return CheckConfig(rules=tuple(rules), check_constructors=check_constructors)


def load_check_config(config_path):
    """
    Parse a YAML check configuration file.

    Raises ConfigurationError when the file is missing, is not valid YAML or
    fails validation.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Unable to find: {config_path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Unable to read {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Unable to parse {config_path} - {exc}") from exc

    base_dir = os.path.dirname(os.path.abspath(config_path))
    return build_check_config(data, source=os.path.basename(config_path), base_dir=base_dir)
