import re
from dataclasses import dataclass


DECLARATIVE_ATTRIBUTES = ("methodName", "argumentCount", "reason")


class ConfigurationError(ValueError):
    pass


def _compile(pattern, field, rule_name):
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(
            f"Rule '{rule_name}': invalid regex for {field} '{pattern}' - {exc}"
        ) from exc


@dataclass(frozen=True)
class Rule:
    """
    A compiled forbidden-call rule.

    Build instances from pattern text with Rule.compile(). Direct construction
    only accepts already compiled patterns.
    arg_count_pattern is None when the rule accepts any number of arguments.
    """

    name: str
    name_pattern: re.Pattern
    arg_count_pattern: re.Pattern | None = None
    reason: str | None = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ConfigurationError(f"Rule '{self.name or ''}': missing required 'name'")
        if not isinstance(self.name_pattern, re.Pattern):
            raise ConfigurationError(f"Rule '{self.name}': method name must be a compiled pattern")
        if self.arg_count_pattern is not None and not isinstance(self.arg_count_pattern, re.Pattern):
            raise ConfigurationError(f"Rule '{self.name}': argument count must be a compiled pattern")
        if self.reason is not None and not isinstance(self.reason, str):
            raise ConfigurationError(f"Rule '{self.name}': reason must be a string")

    @classmethod
    def compile(
        cls,
        name_pattern,
        arg_count_pattern=None,
        reason=None,
        *,
        name,
        require_name=False,
        require_reason=False,
    ):
        if require_name and not name:
            raise ConfigurationError(f"Rule '{name or ''}': missing required 'name'")

        if not name_pattern:
            raise ConfigurationError(f"Rule '{name}': missing required 'methodName'")
        compiled_name = _compile(name_pattern, "method name", name)

        if require_reason and not reason:
            raise ConfigurationError(f"Rule '{name}': missing required 'reason'")

        compiled_count = None
        if arg_count_pattern:
            compiled_count = _compile(arg_count_pattern, "argument count", name)

        return cls(
            name=name,
            name_pattern=compiled_name,
            arg_count_pattern=compiled_count,
            reason=reason or None,
        )

    def matches(self, name: str, arg_count: str) -> bool:
        if self.name_pattern.fullmatch(name) is None:
            return False
        return self.arg_count_pattern is None or self.arg_count_pattern.fullmatch(arg_count) is not None

    def describe(self) -> str:
        text = f"{self.name}: methodName={self.name_pattern.pattern!r}"
        if self.arg_count_pattern is not None:
            text += f" argCount={self.arg_count_pattern.pattern!r}"
        else:
            text += " argCount=<any>"
        return text


def _attribute_text(rule_name, key, value):
    if value is None or isinstance(value, str):
        return value
    # YAML turns `argumentCount: 1` into an int; booleans are never meant.
    if key == "argumentCount" and isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    raise ConfigurationError(
        f"Rule '{rule_name}': '{key}' must be a string, got {type(value).__name__}"
    )


def declarative_rule(name, attributes):
    """
    Build a rule from a named configuration block.

    Accepts only methodName, argumentCount and reason; reason is mandatory.
    """
    if not isinstance(attributes, dict):
        raise ConfigurationError(f"Rule '{name}': rule block must be a mapping")

    unknown = sorted(key for key in attributes if key not in DECLARATIVE_ATTRIBUTES)
    if unknown:
        raise ConfigurationError(
            f"Rule '{name}': unknown attribute(s) {', '.join(repr(k) for k in unknown)}. "
            f"Valid attributes: {', '.join(DECLARATIVE_ATTRIBUTES)}."
        )

    values = {key: _attribute_text(name, key, attributes.get(key)) for key in DECLARATIVE_ATTRIBUTES}
    return Rule.compile(
        values["methodName"],
        values["argumentCount"],
        values["reason"],
        name=name,
        require_name=True,
        require_reason=True,
    )


def file_rule(source, index, attributes):
    """
    Build a rule from one ForbiddenMethod entry of an external rules file.
    """
    method_name = attributes.get("methodName")
    if method_name is None:
        raise ConfigurationError("missing methodName attribute")
    return Rule.compile(
        method_name,
        attributes.get("argCount"),
        name=f"{source}:{index}",
    )


def find_violation(rules, name, arg_count):
    """
    Return the first rule, in declaration order, that forbids this call.
    """
    arg_count_text = str(arg_count)
    for rule in rules:
        if rule.matches(name, arg_count_text):
            return rule
    return None
