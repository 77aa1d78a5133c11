from dataclasses import dataclass
from enum import Enum

from clang.cindex import CursorKind


_WRAPPER_KINDS = {CursorKind.UNEXPOSED_EXPR, CursorKind.PAREN_EXPR}
_QUALIFIERS = {".", "->", "::"}
_CALLEE_KINDS = {CursorKind.DECL_REF_EXPR, CursorKind.MEMBER_REF_EXPR, CursorKind.OVERLOADED_DECL_REF}
_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CALLEE_KEYWORDS = {"template", "this"}
_DECLARATION_KINDS = {CursorKind.VAR_DECL, CursorKind.FIELD_DECL}


class CallShape(Enum):
    PLAIN_CALL = "plain call"
    QUALIFIED_CALL = "qualified call"
    CONSTRUCTOR_CALL = "constructor call"
    # A constructor reached without a written argument list: nothing to count.
    CONSTRUCTOR_REFERENCE = "constructor reference"
    # new T[n]: a size, no constructor arguments.
    ARRAY_CREATION = "array creation"
    NOT_A_CALL = "not a call"


CHECKABLE_SHAPES = {CallShape.PLAIN_CALL, CallShape.QUALIFIED_CALL, CallShape.CONSTRUCTOR_CALL}


@dataclass(frozen=True)
class CallSite:
    shape: CallShape
    name: str
    arg_count: int
    line: int | None = None
    column: int | None = None


def _tokens(node):
    cursor = node.get("cursor")
    if cursor is None:
        return []
    return [t.spelling for t in cursor.get_tokens()]


def _unwrap(node):
    cur = node
    while cur is not None and cur.get("kind") in _WRAPPER_KINDS:
        children = cur.get("children", [])
        if len(children) != 1:
            break
        cur = children[0]
    return cur


def _referenced_kind(node):
    cursor = node.get("cursor")
    if cursor is None:
        return None
    referenced = cursor.referenced
    if referenced is None:
        return None
    return referenced.kind


def _is_written(argument):
    # Default arguments are synthesized by clang and carry no source range.
    start = argument.extent.start
    return start.file is not None and start.line > 0


def _written_argument_count(node):
    cursor = node.get("cursor")
    if cursor is None:
        return 0
    return sum(1 for arg in cursor.get_arguments() if arg is not None and _is_written(arg))


def _closing_index(tokens, start):
    """
    Index of the token closing the bracket opened at tokens[start], or None.
    """
    stack = []
    for i in range(start, len(tokens)):
        tok = tokens[i]
        if tok in _OPENERS:
            stack.append(_OPENERS[tok])
        elif stack and tok == stack[-1]:
            stack.pop()
            if not stack:
                return i
    return None


def _count_items(tokens):
    """
    Count top-level comma-separated items in a bracketed token group.
    """
    inner = tokens[1:-1]
    if not inner:
        return 0
    depth = 0
    count = 1
    for tok in inner:
        if tok in _OPENERS:
            depth += 1
        elif tok in _OPENERS.values():
            depth -= 1
        elif tok == "," and depth == 0:
            count += 1
    return count


def _parenthesized_type_parts(tokens, start, end):
    type_tokens = tokens[start + 1:end]
    if "[" in type_tokens:
        # new (int[4])
        return type_tokens[:type_tokens.index("[")], [], "["
    i = end + 1
    if i >= len(tokens):
        return type_tokens, [], None
    close = _closing_index(tokens, i)
    initializer = tokens[i:close + 1] if close is not None else tokens[i:]
    return type_tokens, initializer, tokens[i]


def _new_expression_parts(tokens):
    """
    Split the tokens of a new-expression.

    Returns (type_tokens, initializer_tokens, opener) where opener is the
    token that follows the type: "(", "{", "[" or None.
    """
    if "new" not in tokens:
        return [], [], None
    i = tokens.index("new") + 1

    # Placement arguments new (buffer) T(...), or a parenthesized type new (T)(...)
    if i < len(tokens) and tokens[i] == "(":
        end = _closing_index(tokens, i)
        if end is None:
            return [], [], None
        if end + 1 >= len(tokens) or tokens[end + 1] in ("(", "{"):
            return _parenthesized_type_parts(tokens, i, end)
        i = end + 1

    type_tokens = []
    angle = 0
    while i < len(tokens):
        tok = tokens[i]
        if angle == 0 and tok in _OPENERS:
            break
        if tok == "<":
            angle += 1
        elif tok == ">":
            angle -= 1
        elif tok == ">>":
            angle -= 2
        type_tokens.append(tok)
        i += 1

    if i >= len(tokens):
        return type_tokens, [], None

    opener = tokens[i]
    end = _closing_index(tokens, i)
    initializer = tokens[i:end + 1] if end is not None else tokens[i:]
    return type_tokens, initializer, opener


def _simple_type_name(type_tokens):
    """
    Simple name of a written type: std :: vector < int > -> vector.
    """
    name = None
    angle = 0
    for tok in type_tokens:
        if tok == "<":
            angle += 1
        elif tok == ">":
            angle -= 1
        elif tok == ">>":
            angle -= 2
        elif angle == 0 and (tok[:1].isalpha() or tok[:1] == "_"):
            name = tok
    return name


def _constructor_child(node):
    for child in node.get("children", []):
        child = _unwrap(child)
        if child is None:
            continue
        if child.get("kind") == CursorKind.CALL_EXPR and _referenced_kind(child) == CursorKind.CONSTRUCTOR:
            return child
    return None


def _classify_new(node):
    type_tokens, initializer, opener = _new_expression_parts(_tokens(node))
    name = _simple_type_name(type_tokens)
    if not name:
        return CallShape.NOT_A_CALL, None, 0
    if opener == "[":
        return CallShape.ARRAY_CREATION, name, 0
    if opener not in ("(", "{"):
        return CallShape.CONSTRUCTOR_REFERENCE, name, 0

    construct = _constructor_child(node)
    if construct is not None:
        return CallShape.CONSTRUCTOR_CALL, name, _written_argument_count(construct)
    return CallShape.CONSTRUCTOR_CALL, name, _count_items(initializer)


def _owner(node):
    parent = node.get("parent")
    while parent is not None and parent.get("kind") in _WRAPPER_KINDS:
        parent = parent.get("parent")
    return parent


def _has_written_arguments(node):
    """
    True for T(args), T{args}, direct initialization var(args), braced
    initializers of variables and fields, and member initializers m(args).
    Implicit copies, conversions and default construction have no list of their own.
    """
    tokens = _tokens(node)
    if not tokens:
        return False
    owner = _owner(node)
    owner_kind = owner.get("kind") if owner is not None else None

    # Widget field{1, 2}; and Widget w = {1, 2};
    if tokens[0] == "{":
        return owner_kind in _DECLARATION_KINDS

    if len(tokens) < 2 or tokens[1] not in ("(", "{"):
        return False
    if tokens[0] == node.get("name"):
        return True
    # Holder() : member_(7) {}
    if owner_kind == CursorKind.CONSTRUCTOR:
        return True
    return owner_kind in _DECLARATION_KINDS and tokens[0] == owner.get("name")


def _classify_construct(node):
    parent = _owner(node)
    if parent is not None and parent.get("kind") == CursorKind.CXX_NEW_EXPR:
        # Reported through the enclosing new-expression.
        return CallShape.NOT_A_CALL, None, 0

    name = node.get("name")
    if not name:
        return CallShape.NOT_A_CALL, None, 0
    if not _has_written_arguments(node):
        return CallShape.CONSTRUCTOR_REFERENCE, name, 0
    return CallShape.CONSTRUCTOR_CALL, name, _written_argument_count(node)


def _callee(node):
    children = node.get("children", [])
    if not children:
        return None
    callee = _unwrap(children[0])
    if callee is None or callee.get("kind") not in _CALLEE_KINDS:
        return None
    return callee


def _is_identifier(tok):
    return (tok[:1].isalpha() or tok[:1] == "_") and tok not in _CALLEE_KEYWORDS


def _outside_template_args(tokens):
    """
    Yield the tokens of a written callee that are not inside <...>.
    """
    angle = 0
    for tok in tokens:
        if tok == "<":
            angle += 1
        elif tok == ">":
            angle -= 1
        elif tok == ">>":
            angle -= 2
        elif angle <= 0:
            yield tok


def _is_qualified(callee_tokens):
    return any(tok in _QUALIFIERS for tok in _outside_template_args(callee_tokens))


def _written_callee(node):
    """
    Callee tokens of a call spelled name(...), obj.name(...) or A::name(...).

    Returns the tokens before the argument list, or None when the callee is
    not written as a (possibly qualified) name, e.g. (*fp)() or a + b.
    """
    tokens = _tokens(node)
    if "(" not in tokens:
        return None
    end = tokens.index("(")
    callee_tokens = tokens[:end]
    if not callee_tokens:
        return None
    opened = callee_tokens.count("<")
    closed = callee_tokens.count(">") + 2 * callee_tokens.count(">>")
    if opened != closed:
        return None
    for tok in _outside_template_args(callee_tokens):
        if tok not in _QUALIFIERS and tok not in _CALLEE_KEYWORDS and not _is_identifier(tok):
            return None
    return callee_tokens


def _name_from_tokens(callee_tokens):
    """
    Last identifier of a written callee: t . template get < 0 > -> get.
    """
    name = None
    for tok in _outside_template_args(callee_tokens):
        if _is_identifier(tok):
            name = tok
    return name


def _classify_call(node):
    callee = _callee(node)
    name = node.get("name") or (callee.get("name") if callee is not None else None)
    if name:
        qualified = callee is not None and _is_qualified(_tokens(callee))
    else:
        # Calls that depend on a template parameter carry no resolved name.
        callee_tokens = _written_callee(node)
        name = _name_from_tokens(callee_tokens) if callee_tokens else None
        if not name:
            return CallShape.NOT_A_CALL, None, 0
        qualified = _is_qualified(callee_tokens)

    shape = CallShape.QUALIFIED_CALL if qualified else CallShape.PLAIN_CALL
    return shape, name, _written_argument_count(node)


def describe_call(node):
    """
    Classify a node and derive the call's bare name and argument count.

    Returns (shape, name, arg_count); name is None for NOT_A_CALL.
    """
    kind = node.get("kind")
    if kind == CursorKind.CXX_NEW_EXPR:
        return _classify_new(node)
    if kind == CursorKind.CALL_EXPR:
        if _referenced_kind(node) == CursorKind.CONSTRUCTOR:
            return _classify_construct(node)
        return _classify_call(node)
    return CallShape.NOT_A_CALL, None, 0


def classify_call(node):
    return describe_call(node)[0]


def extract_call_site(node, check_constructors=False):
    """
    Return the CallSite for a checkable call, or None when the node should be skipped.

    Constructor calls are only returned when check_constructors is set.
    """
    shape, name, arg_count = describe_call(node)
    if shape not in CHECKABLE_SHAPES:
        return None
    if shape == CallShape.CONSTRUCTOR_CALL and not check_constructors:
        return None
    return CallSite(
        shape=shape,
        name=name,
        arg_count=arg_count,
        line=node.get("line"),
        column=node.get("column"),
    )
