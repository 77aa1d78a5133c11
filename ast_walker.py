import os


def walk_ast(cursor, nodes, *, parent=None, target_file=None, _realpath_cache=None):
    """
    Recursively walks a Clang AST cursor and collects all nodes
    into a flat list for the rule engine.

    Nodes from other files (headers) are skipped when target_file is given.
    Each node keeps its children and parent for rules that need structure.
    """

    if _realpath_cache is None:
        _realpath_cache = {}

    location = cursor.location
    cursor_file = location.file.name if location.file else None
    if target_file and cursor_file:
        cached = _realpath_cache.get(cursor_file)
        if cached is None:
            cached = os.path.realpath(cursor_file)
            _realpath_cache[cursor_file] = cached
        if cached != target_file:
            return None

    node = {
        "kind": cursor.kind,
        "name": cursor.spelling,
        "line": location.line,
        "column": location.column,
        "children": [],
        "cursor": cursor,
        "parent": parent,
        "file": cursor_file,
    }

    nodes.append(node)

    for child in cursor.get_children():
        child_node = walk_ast(
            child,
            nodes,
            parent=node,
            target_file=target_file,
            _realpath_cache=_realpath_cache,
        )
        if child_node is not None:
            node["children"].append(child_node)

    return node
