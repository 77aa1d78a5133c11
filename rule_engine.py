class RuleEngine:
    """
    Applies a collection of rules to a flat list of AST nodes
    and collects their diagnostics in source order.
    """

    def __init__(self, rules):
        self.rules = rules

    def run(self, nodes):
        diagnostics = []

        for node in nodes:
            for rule in self.rules:
                if rule.matches(node):
                    result = rule.apply(node)

                    # Declined nodes produce nothing
                    if result is not None:
                        diagnostics.append(result)

        for rule in self.rules:
            diagnostics.extend(rule.finalize() or [])

        def position(item):
            index, diagnostic = item
            line = diagnostic.line if isinstance(diagnostic.line, int) else 10**9
            column = diagnostic.column if isinstance(diagnostic.column, int) else 0
            return (line, column, index)

        return [diagnostic for _, diagnostic in sorted(enumerate(diagnostics), key=position)]
