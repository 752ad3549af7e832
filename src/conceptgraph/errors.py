"""Exceptions raised by the knowledge-graph engine."""


class ConceptGraphError(Exception):
    """Base exception for knowledge-graph operations."""


class GraphStateError(ConceptGraphError):
    """Raised for problems with a stored or imported graph state."""


class CorruptStateError(GraphStateError):
    """Raised when a serialized graph violates the graph invariants.

    The engine never repairs such a state; the caller has to fix or discard it.
    """

    def __init__(self, message: str, *, key: str | None = None):
        self.key = key
        super().__init__(f"{key}: {message}" if key else message)
