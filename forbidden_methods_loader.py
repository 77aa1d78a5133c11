import logging
import os
import xml.etree.ElementTree as ET
from urllib.parse import unquote, urlparse

from forbidden_rules import ConfigurationError, file_rule


logger = logging.getLogger(__name__)

ROOT_ELEMENT = "ForbiddenMethods"
RULE_ELEMENT = "ForbiddenMethod"


def resolve_rules_path(file_ref, base_dir=None):
    """
    Turn a path or file: URI into a filesystem path.
    Relative paths are resolved against base_dir when given.
    """
    if file_ref.startswith("file:"):
        parsed = urlparse(file_ref)
        path = unquote(parsed.netloc + parsed.path)
    else:
        path = file_ref
    if base_dir and not os.path.isabs(path):
        path = os.path.join(base_dir, path)
    return path


def parse_rules(text, source):
    """
    Parse the XML text of a rules file into an ordered tuple of rules.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigurationError(f"Unable to parse {source} - {exc}") from exc

    if root.tag != ROOT_ELEMENT:
        raise ConfigurationError(
            f"Unable to parse {source} - root element must be <{ROOT_ELEMENT}>, got <{root.tag}>"
        )

    rules = []
    for index, element in enumerate(root, start=1):
        if element.tag != RULE_ELEMENT:
            raise ConfigurationError(
                f"Unable to parse {source} - unexpected element <{element.tag}>"
            )
        try:
            rules.append(file_rule(source, index, element.attrib))
        except ConfigurationError as exc:
            raise ConfigurationError(f"Unable to parse {source} - {exc}") from exc

    logger.debug("Loaded %d forbidden method rule(s) from %s", len(rules), source)
    return tuple(rules)


def load_rules_file(file_ref, optional=False, base_dir=None):
    """
    Load the rules of an external ForbiddenMethods file.

    A file that cannot be opened is a configuration error unless optional is
    set, in which case no rules are loaded.
    """
    path = resolve_rules_path(file_ref, base_dir)
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        if optional:
            logger.warning("Optional rules file %s cannot be opened (%s); no rules loaded from it.", file_ref, exc)
            return ()
        raise ConfigurationError(f"Unable to find: {file_ref}") from exc

    return parse_rules(data, file_ref)
