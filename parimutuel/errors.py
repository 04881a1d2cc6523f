"""
Error taxonomy for the pool engine.

Every error raised by the core derives from PoolError and is reported to the
immediate caller. Nothing is retried inside the core.
"""


class PoolError(Exception):
    """Base class for every failure the engine reports."""


class ValidationError(PoolError):
    """Bad input or a precondition that does not hold. No mutation was made."""


class EventResolvedError(ValidationError):
    """A wager was attempted on an event that has already been resolved."""


class AlreadyResolvedError(PoolError):
    """A second resolution was attempted. No payouts were made."""


class StoreError(PoolError):
    """The ledger store failed to read or write. Nothing was applied."""


class LockTimeoutError(PoolError):
    """A lock could not be acquired within the configured wait."""
