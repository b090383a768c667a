"""Exceptions raised by the scheduling core and the session orchestrator."""


class InvalidQuality(ValueError):
    """Quality rating outside the accepted {1, 2} scale."""

    def __init__(self, quality):
        self.quality = quality
        super().__init__(f"Quality must be 1 (incorrect) or 2 (correct), got {quality!r}")


class InvalidPriorState(ValueError):
    """A stored progress record is too broken to read."""


class PersistenceFailure(RuntimeError):
    """A store call failed; the rating may not have been saved."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class SessionStateMismatch(ValueError):
    """A saved card order references cards that are no longer in the deck."""

    def __init__(self, stale_ids: list[str]):
        self.stale_ids = stale_ids
        super().__init__(f"{len(stale_ids)} saved card(s) no longer in deck: {', '.join(stale_ids)}")


class SessionTransitionError(RuntimeError):
    """An orchestrator operation was called in the wrong state."""
