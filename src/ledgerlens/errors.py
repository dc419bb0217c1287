class LedgerlensError(Exception):
    """Base class for errors raised by ledgerlens."""


class ExtractionFailed(LedgerlensError):
    """The upstream text extractor failed; no statement text to work with."""

    def __init__(self, message: str, metadata: dict | None = None):
        super().__init__(message)
        self.message = message
        self.metadata = dict(metadata or {})


class RuleFetchFailed(LedgerlensError):
    """The rule store could not deliver a user's rules (error, timeout or cancel)."""

    def __init__(self, user_id: str, message: str):
        super().__init__(f"Could not load rules for {user_id!r}: {message}")
        self.user_id = user_id
