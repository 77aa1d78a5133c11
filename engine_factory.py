from check_config import CheckConfig, build_check_config, load_check_config
from forbid_calls_rule import ForbidCertainCallsRule
from rule_engine import RuleEngine


def resolve_config(config_path=None, rules_file=None, optional=False, check_constructors=False):
    """
    Combine the YAML configuration with command-line options.

    Rules from --rules-file follow the configured ones; --check-constructors
    can only switch constructor checking on.
    """
    if config_path:
        config = load_check_config(config_path)
    else:
        config = CheckConfig()

    rules = config.rules
    if rules_file:
        extra = build_check_config({"file": rules_file, "optional": optional}, source="command line")
        rules = rules + extra.rules

    return CheckConfig(
        rules=rules,
        check_constructors=config.check_constructors or check_constructors,
    )


def build_engine(config, report=None):
    rule = ForbidCertainCallsRule(
        config.rules,
        check_constructors=config.check_constructors,
        report=report,
    )
    return RuleEngine([rule])
