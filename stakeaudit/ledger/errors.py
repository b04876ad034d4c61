"""Error taxonomy for the authorization audit.

Ledger read failures are explicit and propagate to the per-operator
caller. IndexerUnavailable and MalformedRecord are soft conditions that
the deauthorization scan absorbs and logs.
"""

from __future__ import annotations

from typing import Any


class AuditError(Exception):
    """Base class for all audit errors."""


# ---------------------------------------------------------------------------
# Ledger reads
# ---------------------------------------------------------------------------


class LedgerReadError(AuditError):
    """A point-in-time ledger read could not produce a value."""


class LedgerUnreachable(LedgerReadError):
    """Retries or the call deadline were exhausted on transient errors."""

    def __init__(self, operation: Any, block: int | None, attempts: int, last_error: BaseException | None):
        self.operation = operation
        self.block = block
        self.attempts = attempts
        self.last_error = last_error
        at = f" at block {block}" if block is not None else ""
        super().__init__(
            f"{operation}{at} unreachable after {attempts} attempt(s): {last_error}"
        )


class HistoryUnavailable(LedgerReadError):
    """The node does not retain state at the requested block."""


class PermanentLedgerError(LedgerReadError):
    """Non-transient read failure (reverted call, malformed call, bad output)."""


# ---------------------------------------------------------------------------
# Audit run
# ---------------------------------------------------------------------------


class InitializationFailed(AuditError):
    """The sortition pool address could not be resolved."""


class IndexerUnavailable(AuditError):
    """The transaction indexer could not return call history."""


class MalformedRecord(AuditError):
    """A cached transaction record cannot be decoded."""


__all__ = [
    "AuditError",
    "HistoryUnavailable",
    "IndexerUnavailable",
    "InitializationFailed",
    "LedgerReadError",
    "LedgerUnreachable",
    "MalformedRecord",
    "PermanentLedgerError",
]
