"""Ledger access for the authorization audit.

Point-in-time contract reads (RetryingLedgerReader over a LedgerClient),
the optional transaction indexer, and the local transaction cache.
"""

from .errors import (
    AuditError,
    HistoryUnavailable,
    IndexerUnavailable,
    InitializationFailed,
    LedgerReadError,
    LedgerUnreachable,
    MalformedRecord,
    PermanentLedgerError,
)
from .indexer import IndexerAbsent, IndexerAvailable, IndexerCapability, TenderlyClient
from .models import (
    DEAUTHORIZE_METHOD,
    DEAUTHORIZE_SIGNATURE,
    ContractAddresses,
    DecodedArgument,
    Interval,
    OperatorAuthorizationVerdict,
    TransactionRecord,
    TransactionStatus,
)
from .reader import LedgerRead, RetryingLedgerReader, RetryPolicy

__all__ = [
    "DEAUTHORIZE_METHOD",
    "DEAUTHORIZE_SIGNATURE",
    "AuditError",
    "ContractAddresses",
    "DecodedArgument",
    "HistoryUnavailable",
    "IndexerAbsent",
    "IndexerAvailable",
    "IndexerCapability",
    "IndexerUnavailable",
    "InitializationFailed",
    "Interval",
    "LedgerRead",
    "LedgerReadError",
    "LedgerUnreachable",
    "MalformedRecord",
    "OperatorAuthorizationVerdict",
    "PermanentLedgerError",
    "RetryPolicy",
    "RetryingLedgerReader",
    "TenderlyClient",
    "TransactionRecord",
    "TransactionStatus",
]
