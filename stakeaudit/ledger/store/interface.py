"""TransactionCache protocol - pluggable persistence for indexer records.

Implementations: MemoryTransactionCache, FilesystemTransactionCache.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from stakeaudit.ledger.models import TransactionRecord


@runtime_checkable
class TransactionCache(Protocol):
    """Append-only store of successful historical contract calls."""

    async def get_transactions_for_method(
        self, contract_address: str, method_name: str,
    ) -> list[TransactionRecord]:
        """All stored calls of `method_name` sent to the contract. Unordered."""
        ...

    async def store(self, records: Iterable[TransactionRecord]) -> None:
        """Upsert records keyed by transaction hash. Never deletes."""
        ...


__all__ = ["TransactionCache"]
