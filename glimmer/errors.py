# glimmer/errors.py
from __future__ import annotations


class GlimmerError(Exception):
    """Base for every error the ledger core reports to its callers."""


class ValidationError(GlimmerError):
    """Bad input. Nothing was written; safe to retry after correcting it."""


class NotFoundError(GlimmerError):
    """The referenced entity is gone, usually cleared by a rollover."""


class NoCurrentWordError(GlimmerError):
    """The operation needs an active word and there is none."""


class GenerationUnavailable(GlimmerError):
    """An external generation capability failed or timed out."""

    def __init__(self, capability: str, reason: str):
        super().__init__(f"{capability} unavailable: {reason}")
        self.capability = capability
        self.reason = reason


class PersistenceError(GlimmerError):
    """The ledger could not be written. The operation was not applied."""


class RolloverConflict(GlimmerError):
    """Another rollover replaced the outgoing word before this one committed."""
