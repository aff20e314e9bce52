class ContractViolation(RuntimeError):
    """A GameState returned data the solvers cannot interpret.

    Raised instead of guessing: an empty action list at a non-terminal
    node, an unknown player id, malformed chance outcomes or an
    information set whose action count changes between visits.
    """


class TableFormatError(ValueError):
    """Serialized node table is truncated, corrupt or of the wrong format."""
