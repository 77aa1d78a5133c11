import logging

from clang.cindex import CursorKind

from base_rule import BaseRule
from call_sites import extract_call_site
from forbidden_rules import find_violation
from messages import build_diagnostic


logger = logging.getLogger(__name__)


class ForbidCertainCallsRule(BaseRule):
    """
    Reports calls to forbidden functions, methods and constructors.

    Rules are checked in order and only the first matching rule is reported
    for a call site. Constructor calls are checked only when
    check_constructors is set.
    """

    _CALL_KINDS = {CursorKind.CALL_EXPR, CursorKind.CXX_NEW_EXPR}

    def __init__(self, rules=(), check_constructors=False, report=None):
        self.rules = tuple(rules)
        self.check_constructors = check_constructors
        self.report = report

    def matches(self, node):
        return bool(self.rules) and node.get("kind") in self._CALL_KINDS

    def apply(self, node):
        call_site = extract_call_site(node, check_constructors=self.check_constructors)
        if call_site is None:
            return None

        rule = find_violation(self.rules, call_site.name, call_site.arg_count)
        if rule is None:
            return None

        logger.debug(
            "%s with %d argument(s) on line %s violates %s",
            call_site.name,
            call_site.arg_count,
            call_site.line,
            rule.name,
        )
        diagnostic = build_diagnostic(call_site, rule)
        if self.report is not None:
            self.report(diagnostic.line, diagnostic.column, diagnostic.key, diagnostic.args)
        return diagnostic
