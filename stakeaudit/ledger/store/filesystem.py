"""Filesystem-based TransactionCache implementation.

Writes one JSON document per contract:
  {data_dir}/transactions/{contract_address}.json

Each document maps transaction hash -> record. Writes are atomic
(tmp + rename); when two processes store concurrently the last writer
wins, which only matters for records the other writer will re-fetch on
its next refresh.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

import bittensor as bt
from pydantic import ValidationError

from stakeaudit.ledger.models import TransactionRecord, normalize_address


def _read_json(path: Path) -> Any:
    """Read plain JSON file."""
    with open(path) as f:
        return json.load(f)


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON via a temp file in the same directory, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(tmp_fd, "w") as f:
            json.dump(data, f, default=str, sort_keys=True)
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class FilesystemTransactionCache:
    """Local filesystem TransactionCache implementation."""

    def __init__(self, data_dir: str):
        self.base = Path(data_dir) / "transactions"
        self.base.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _path(self, contract_address: str) -> Path:
        return self.base / f"{normalize_address(contract_address)}.json"

    def _load_raw(self, path: Path) -> dict[str, Any]:
        """Load a contract document. If missing/corrupt, treat as empty."""
        if not path.exists():
            return {}
        try:
            data = _read_json(path)
        except (OSError, ValueError) as e:
            bt.logging.warning({"transaction_cache": {"corrupt_file": str(path), "error": str(e)}})
            return {}
        if not isinstance(data, dict):
            bt.logging.warning({"transaction_cache": {"corrupt_file": str(path), "error": "not a mapping"}})
            return {}
        return data

    async def get_transactions_for_method(
        self, contract_address: str, method_name: str,
    ) -> list[TransactionRecord]:
        contract = normalize_address(contract_address)
        records: list[TransactionRecord] = []
        for tx_hash, raw in self._load_raw(self._path(contract_address)).items():
            try:
                record = TransactionRecord.model_validate(raw)
            except ValidationError as e:
                bt.logging.warning({
                    "transaction_cache": {"malformed_record": tx_hash, "error": str(e)}
                })
                continue
            if normalize_address(record.to) == contract and record.method == method_name:
                records.append(record)
        return records

    async def store(self, records: Iterable[TransactionRecord]) -> None:
        by_contract: dict[str, list[TransactionRecord]] = {}
        for record in records:
            by_contract.setdefault(normalize_address(record.to), []).append(record)

        async with self._lock:
            for contract, batch in by_contract.items():
                path = self._path(contract)
                stored = self._load_raw(path)
                added = 0
                for record in batch:
                    key = record.hash.lower()
                    if key not in stored:
                        added += 1
                    stored[key] = record.model_dump(mode="json", by_alias=True)
                _write_json_atomic(path, stored)
                bt.logging.debug({
                    "transaction_cache": {"contract": contract, "added": added, "total": len(stored)}
                })


__all__ = ["FilesystemTransactionCache"]
