"""Exceptions raised by the proctoring core."""


class ProctoringError(Exception):
    """Base class for proctoring errors"""


class UnknownViolationKindError(ProctoringError, ValueError):
    """A violation kind outside the taxonomy was passed to the engine"""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown violation kind: {kind!r}")


class DeliveryError(ProctoringError):
    """Violation records could not be delivered to the assessment service"""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)
