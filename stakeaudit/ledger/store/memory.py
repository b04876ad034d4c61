"""In-process TransactionCache, shared across audit runs of one process."""

from __future__ import annotations

import asyncio
from typing import Iterable

from stakeaudit.ledger.models import TransactionRecord, normalize_address


class MemoryTransactionCache:
    """Dict-backed cache keyed by lower-cased transaction hash."""

    def __init__(self, records: Iterable[TransactionRecord] = ()):
        self._records: dict[str, TransactionRecord] = {}
        self._lock = asyncio.Lock()
        for record in records:
            self._records[record.hash.lower()] = record

    def __len__(self) -> int:
        return len(self._records)

    async def get_transactions_for_method(
        self, contract_address: str, method_name: str,
    ) -> list[TransactionRecord]:
        contract = normalize_address(contract_address)
        return [
            r for r in self._records.values()
            if normalize_address(r.to) == contract and r.method == method_name
        ]

    async def store(self, records: Iterable[TransactionRecord]) -> None:
        async with self._lock:
            for record in records:
                self._records[record.hash.lower()] = record


__all__ = ["MemoryTransactionCache"]
