class LeadScoreError(Exception):
    """Base class for all lead-scoring domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except LeadScoreError`` clause can catch any domain
    error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class ValidationError(LeadScoreError):
    """Raised when caller input is missing or malformed.

    Never retried; surfaced to the caller immediately.
    """

    def __init__(self, detail: str = "Invalid scoring input"):
        super().__init__(detail)


class InvalidConditionError(ValidationError):
    """Raised when a rule condition uses an unknown operator or bad value."""

    def __init__(self, detail: str = "Invalid rule condition"):
        super().__init__(detail)


class NotFoundError(LeadScoreError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class ContactNotFoundError(NotFoundError):
    """Raised when a requested contact does not exist."""

    def __init__(self, detail: str = "Contact not found"):
        super().__init__(detail)


class ScoringModelNotFoundError(NotFoundError):
    """Raised when a requested scoring model does not exist."""

    def __init__(self, detail: str = "Scoring model not found"):
        super().__init__(detail)


class ScoringRuleNotFoundError(NotFoundError):
    """Raised when a requested scoring rule does not exist on the model."""

    def __init__(self, detail: str = "Scoring rule not found"):
        super().__init__(detail)


class ConcurrencyConflictError(LeadScoreError):
    """Raised on lock contention or a detected lost update.

    The scoring engine retries these with bounded backoff; the error
    only reaches the caller once every attempt has failed.
    """

    def __init__(self, detail: str = "Concurrent update conflict, please retry"):
        super().__init__(detail)


class PersistenceError(LeadScoreError):
    """Raised when the store is unavailable or rejects a write.

    The per-contact transaction is rolled back before this propagates,
    so no partial rule firing is ever committed.
    """

    def __init__(self, detail: str = "Score store unavailable"):
        super().__init__(detail)
