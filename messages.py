from dataclasses import dataclass


MSG_KEY_WITH_ARG = "forbid.certain.methods"
MSG_KEY_WITHOUT_ARG = "forbid.certain.methods.noarg"

_TEMPLATES = {
    MSG_KEY_WITH_ARG: (
        "Call to '{0}' with {2} argument(s) is forbidden: "
        "name matches '{1}' and argument count matches '{3}'."
    ),
    MSG_KEY_WITHOUT_ARG: "Call to '{0}' is forbidden: name matches '{1}'.",
}
_TEMPLATE_ARITY = {MSG_KEY_WITH_ARG: 4, MSG_KEY_WITHOUT_ARG: 2}


def format_message(key, args):
    """
    Render a message key with its ordered arguments.
    One argument beyond the template's own is the rule's reason.
    """
    template = _TEMPLATES[key]
    arity = _TEMPLATE_ARITY[key]
    text = template.format(*args[:arity])
    if len(args) > arity and args[arity]:
        text += f" Reason: {args[arity]}"
    return text


@dataclass(frozen=True)
class Diagnostic:
    line: int | None
    column: int | None
    key: str
    args: tuple
    rule_name: str | None = None

    @property
    def message(self):
        return format_message(self.key, self.args)


def build_diagnostic(call_site, rule):
    """
    Assemble the diagnostic for a call site that violates rule.
    """
    if rule.arg_count_pattern is not None:
        key = MSG_KEY_WITH_ARG
        args = (
            call_site.name,
            rule.name_pattern.pattern,
            call_site.arg_count,
            rule.arg_count_pattern.pattern,
        )
    else:
        key = MSG_KEY_WITHOUT_ARG
        args = (call_site.name, rule.name_pattern.pattern)

    if rule.reason is not None:
        args += (rule.reason,)

    return Diagnostic(
        line=call_site.line,
        column=call_site.column,
        key=key,
        args=args,
        rule_name=rule.name,
    )
