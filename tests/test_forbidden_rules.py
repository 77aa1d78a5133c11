import re
import unittest

from forbidden_rules import (
    ConfigurationError,
    Rule,
    declarative_rule,
    file_rule,
    find_violation,
)


class RuleCompileTest(unittest.TestCase):
    def test_empty_arg_count_means_no_constraint(self):
        for arg_count in (None, ""):
            rule = Rule.compile("exit", arg_count, name="noExit")
            self.assertIsNone(rule.arg_count_pattern)
            self.assertTrue(rule.matches("exit", "0"))
            self.assertTrue(rule.matches("exit", "7"))

    def test_empty_method_name_is_rejected(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Rule.compile("", name="blank")
        self.assertIn("methodName", str(ctx.exception))
        self.assertIn("blank", str(ctx.exception))

    def test_invalid_method_name_regex_reports_pattern(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Rule.compile("exit(", name="broken")
        message = str(ctx.exception)
        self.assertIn("invalid regex for method name", message)
        self.assertIn("exit(", message)
        self.assertIn("broken", message)

    def test_invalid_arg_count_regex(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Rule.compile("exit", "[1", name="broken")
        self.assertIn("invalid regex for argument count", str(ctx.exception))

    def test_required_reason(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Rule.compile("exit", reason="", name="noExit", require_reason=True)
        self.assertIn("reason", str(ctx.exception))

    def test_required_name(self):
        with self.assertRaises(ConfigurationError):
            Rule.compile("exit", reason="why", name="", require_name=True)

    def test_method_name_checked_before_reason(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Rule.compile("", reason="", name="both", require_reason=True)
        self.assertIn("methodName", str(ctx.exception))

    def test_rule_is_immutable(self):
        rule = Rule.compile("exit", name="noExit")
        with self.assertRaises(AttributeError):
            rule.reason = "changed"

    def test_direct_construction_rejects_invalid_fields(self):
        with self.assertRaises(ConfigurationError):
            Rule(name="", name_pattern=re.compile("exit"))
        with self.assertRaises(ConfigurationError):
            Rule(name="noExit", name_pattern=None)
        with self.assertRaises(ConfigurationError):
            Rule(name="noExit", name_pattern="exit")
        with self.assertRaises(ConfigurationError):
            Rule(name="noExit", name_pattern=re.compile("exit"), arg_count_pattern="1")

    def test_direct_construction_with_compiled_patterns(self):
        rule = Rule(name="noExit", name_pattern=re.compile("exit"), arg_count_pattern=re.compile("0"))
        self.assertIs(find_violation([rule], "exit", 0), rule)
        self.assertIsNone(find_violation([rule], "exit", 1))


class RuleMatchTest(unittest.TestCase):
    def test_name_must_match_entirely(self):
        rule = Rule.compile("exit", name="noExit")
        self.assertTrue(rule.matches("exit", "1"))
        self.assertFalse(rule.matches("exitNow", "1"))
        self.assertFalse(rule.matches("doexit", "1"))

    def test_arg_count_must_match_entirely(self):
        rule = Rule.compile("assert(True|False)", "1", name="assertWithMessage")
        self.assertTrue(rule.matches("assertTrue", "1"))
        self.assertTrue(rule.matches("assertFalse", "1"))
        self.assertFalse(rule.matches("assertTrue", "2"))
        self.assertFalse(rule.matches("assertTrue", "11"))

    def test_arg_count_pattern_alternatives(self):
        rule = Rule.compile("sleep", "[0-2]", name="noSleep")
        self.assertTrue(rule.matches("sleep", "0"))
        self.assertTrue(rule.matches("sleep", "2"))
        self.assertFalse(rule.matches("sleep", "3"))


class FindViolationTest(unittest.TestCase):
    def test_first_declared_rule_wins(self):
        broad = Rule.compile(".*", name="everything")
        narrow = Rule.compile("exit", "0", name="noExit")
        self.assertIs(find_violation([broad, narrow], "exit", 0), broad)
        self.assertIs(find_violation([narrow, broad], "exit", 0), narrow)

    def test_no_rule_matches(self):
        rules = [Rule.compile("exit", name="noExit")]
        self.assertIsNone(find_violation(rules, "quit", 0))
        self.assertIsNone(find_violation([], "exit", 0))

    def test_shadowed_rule_never_wins(self):
        first = Rule.compile("exit", name="first")
        duplicate = Rule.compile("exit", name="first")
        self.assertIs(find_violation([first, duplicate], "exit", 3), first)

    def test_arg_count_is_rendered_in_decimal(self):
        rules = [Rule.compile("assertTrue", "1", name="single")]
        self.assertIsNotNone(find_violation(rules, "assertTrue", 1))
        self.assertIsNone(find_violation(rules, "assertTrue", 2))

    def test_identical_rule_sets_decide_identically(self):
        def build():
            return [
                declarative_rule("noExit", {"methodName": "exit", "reason": "r"}),
                declarative_rule(
                    "assertWithMessage",
                    {"methodName": "assert(True|False)", "argumentCount": "1", "reason": "r"},
                ),
            ]

        calls = [("exit", 0), ("exitNow", 0), ("assertTrue", 1), ("assertTrue", 2), ("assertFalse", 1)]
        first, second = build(), build()
        for name, count in calls:
            a = find_violation(first, name, count)
            b = find_violation(second, name, count)
            self.assertEqual(a is None, b is None)
            if a is not None:
                self.assertEqual(a.name, b.name)


class DeclarativeRuleTest(unittest.TestCase):
    def test_builds_rule_with_reason(self):
        rule = declarative_rule(
            "assertWithMessage",
            {"methodName": "assert(True|False)", "argumentCount": "1", "reason": "Add a message."},
        )
        self.assertEqual(rule.name, "assertWithMessage")
        self.assertEqual(rule.reason, "Add a message.")
        self.assertEqual(rule.arg_count_pattern.pattern, "1")

    def test_integer_argument_count_is_accepted(self):
        rule = declarative_rule("single", {"methodName": "f", "argumentCount": 1, "reason": "r"})
        self.assertEqual(rule.arg_count_pattern.pattern, "1")

    def test_unknown_attribute_is_rejected(self):
        with self.assertRaises(ConfigurationError) as ctx:
            declarative_rule("noExit", {"methodName": "exit", "reason": "r", "argCount": "1"})
        self.assertIn("argCount", str(ctx.exception))

    def test_missing_reason_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            declarative_rule("noExit", {"methodName": "exit"})

    def test_non_string_method_name_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            declarative_rule("noExit", {"methodName": 5, "reason": "r"})


class FileRuleTest(unittest.TestCase):
    def test_has_no_reason(self):
        rule = file_rule("rules.xml", 2, {"methodName": "exit"})
        self.assertIsNone(rule.reason)
        self.assertEqual(rule.name, "rules.xml:2")

    def test_missing_method_name(self):
        with self.assertRaises(ConfigurationError) as ctx:
            file_rule("rules.xml", 1, {"argCount": "1"})
        self.assertIn("missing methodName attribute", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
