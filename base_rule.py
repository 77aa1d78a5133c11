class BaseRule:
    """
    A check dispatched over every walked node.

    matches() selects the nodes the rule cares about; apply() returns a
    Diagnostic for a selected node, or None when there is nothing to report.
    """

    def matches(self, node):
        raise NotImplementedError("matches() must be implemented")

    def apply(self, node):
        raise NotImplementedError("apply() must be implemented")

    def finalize(self):
        """
        Optional hook for rules that report after the whole tree was seen.
        """
        return []
