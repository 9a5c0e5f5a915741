"""Exceptions for django-freight.

Propagation policy:
- ValidationError and InvalidTransition reject one unit of work (a line, a
  transition). Batch operations record them per item and carry on.
- Forbidden and AggregateInconsistency abort the enclosing operation.
"""


class FreightError(Exception):
    """Base exception for freight errors."""
    pass


class ValidationError(FreightError):
    """Raised when input is malformed or out of range.

    Always raised before anything is persisted.
    """

    def __init__(self, messages, line_errors: dict | None = None):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        self.line_errors = line_errors or {}
        super().__init__("; ".join(self.messages))


class NotFound(FreightError):
    """Raised when a referenced entity does not exist in the caller's scope."""

    def __init__(self, entity: str, identifier=None):
        self.entity = entity
        self.identifier = identifier
        if identifier is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} '{identifier}' not found"
        super().__init__(message)


class Forbidden(FreightError):
    """Raised when a row lies outside the caller's tenant scope."""

    def __init__(self, reason: str = "Outside of tenant scope"):
        self.reason = reason
        super().__init__(reason)


class InvalidTransition(FreightError):
    """Raised when a custody or lifecycle precondition is violated."""

    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from '{from_state}' to '{to_state}'"
        super().__init__(self.reason)


class AggregateInconsistency(FreightError):
    """Raised when the booking total cannot be recomputed.

    Fatal to the enclosing transaction: the line mutation is rolled back.
    """

    def __init__(self, booking_id, reason: str = ""):
        self.booking_id = booking_id
        self.reason = reason
        message = f"Could not recompute total for booking '{booking_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ImmutableRecord(FreightError):
    """Raised when an append-only audit row is modified after creation."""
    pass
