"""
Domain errors raised by the tip splitter. None of them is fatal: the HTTP
layer turns each kind into a client-facing status code.
"""


class TipSplitError(Exception):
    """Base class for every domain error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TipSplitError):
    """Missing or invalid required input."""


class ZeroPointsError(ValidationError):
    """Total points for a shift is zero, so tips cannot be divided."""

    def __init__(self, message: str = "Total points cannot be zero"):
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    def __init__(self, current, target):
        super().__init__(f"Cannot move shift from {current.value} to {target.value}")
        self.current = current
        self.target = target


class NotFoundError(TipSplitError):
    def __init__(self, kind: str, key):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class DuplicateKeyError(TipSplitError):
    pass
