"""Exceptions raised by the transit engine."""


class TransitEngineError(Exception):
    """Base exception for all transit engine errors."""
    pass


class InvalidWindowError(TransitEngineError, ValueError):
    """Raised when the requested month/year cannot be scanned."""
    pass


class MissingNatalInstantError(TransitEngineError, ValueError):
    """Raised when a profile has no usable birth instant."""
    pass


class OracleSampleFailure(TransitEngineError):
    """Raised by a position oracle when one body cannot be sampled."""

    def __init__(self, message, body=None, instant=None):
        super().__init__(message)
        self.body = body
        self.instant = instant


class NoTransitDataError(TransitEngineError):
    """Raised when nothing at all could be sampled for a run."""
    pass
