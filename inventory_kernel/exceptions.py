"""
Typed exception hierarchy for the inventory kernel.

Every error carries a ``code`` class attribute (machine-readable, API-safe)
and its context as structured attributes, so callers catch by type and log
by field instead of parsing messages.

    InventoryKernelError (base)
    |
    +-- PeriodError
    |   +-- UnknownPeriodTokenError
    |
    +-- ConfigurationError
    |
    +-- SourceError
    |   +-- SourceUnavailableError
    |
    +-- ReadStateError
    |   +-- ReadStateWriteError
    |
    +-- RankingError
        +-- InvalidRankingLimitError

Category        | Code                    | When Raised
----------------|-------------------------|------------------------------------------
Period          | PERIOD_TOKEN_UNKNOWN    | Token outside the closed period set
Configuration   | CONFIGURATION_INVALID   | Settings file has bad keys or values
Source          | SOURCE_UNAVAILABLE      | A record collection could not be fetched
Read state      | READ_STATE_WRITE_FAILED | Acknowledged ids could not be persisted
Ranking         | RANKING_LIMIT_INVALID   | Negative top-N limit

Data problems inside a snapshot (unparsable timestamps, missing prices,
empty collections) are NOT errors: engines skip or default and log instead.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Period-related exceptions


class PeriodError(InventoryKernelError):
    """Base exception for period resolution errors."""

    code: str = "PERIOD_ERROR"


class UnknownPeriodTokenError(PeriodError):
    """Period token is not one of the supported relative ranges."""

    code: str = "PERIOD_TOKEN_UNKNOWN"

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unknown period token: {token!r}")


# Configuration exceptions


class ConfigurationError(InventoryKernelError):
    """Engine settings could not be parsed or validated."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid setting {field!r}: {reason}")


# Source collaborator exceptions


class SourceError(InventoryKernelError):
    """Base exception for record source errors."""

    code: str = "SOURCE_ERROR"


class SourceUnavailableError(SourceError):
    """A record collection could not be retrieved from its collaborator."""

    code: str = "SOURCE_UNAVAILABLE"

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Source unavailable: {source}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


# Read-state exceptions


class ReadStateError(InventoryKernelError):
    """Base exception for acknowledged-alert persistence errors."""

    code: str = "READ_STATE_ERROR"


class ReadStateWriteError(ReadStateError):
    """Acknowledged alert ids could not be persisted."""

    code: str = "READ_STATE_WRITE_FAILED"

    def __init__(self, storage_key: str, reason: str):
        self.storage_key = storage_key
        self.reason = reason
        super().__init__(f"Cannot persist read state under {storage_key!r}: {reason}")


# Ranking exceptions


class RankingError(InventoryKernelError):
    """Base exception for ranking errors."""

    code: str = "RANKING_ERROR"


class InvalidRankingLimitError(RankingError):
    """Top-N limit must be zero or positive."""

    code: str = "RANKING_LIMIT_INVALID"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Ranking limit must be >= 0, got {limit}")
