"""Transaction indexer capability and the Tenderly HTTP client.

The indexer is optional. It is passed around as a capability value,
either IndexerAvailable(client) or IndexerAbsent(reason), so the
degrade-to-cache path is an explicit branch rather than a None check.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol, Union, runtime_checkable

import bittensor as bt
import httpx
from pydantic import ValidationError

from .errors import IndexerUnavailable
from .models import TransactionRecord


@runtime_checkable
class TransactionIndexer(Protocol):
    """Bulk historical call data for a contract method."""

    async def fetch_call_history(
        self, contract_address: str, method_signature: str,
    ) -> list[TransactionRecord]:
        """Return every recorded call, successful or not.

        Raises IndexerUnavailable when the history cannot be fetched.
        """
        ...


@dataclass(frozen=True)
class IndexerAvailable:
    client: TransactionIndexer


@dataclass(frozen=True)
class IndexerAbsent:
    reason: str = "indexer not configured"


IndexerCapability = Union[IndexerAvailable, IndexerAbsent]


def _transactions(body: Any) -> list[Any]:
    """Extract the transaction list from a response body.

    Accepts a bare list or {"transactions": [...]}; anything else means
    the indexer answered with something other than call history.
    """
    if isinstance(body, dict):
        body = body.get("transactions") or []
    if not isinstance(body, list):
        raise IndexerUnavailable(
            f"Tenderly returned unexpected payload: {type(body).__name__}"
        )
    return body


def _parse_transaction(tx: Any) -> TransactionRecord | None:
    """Validate one indexer entry; invalid entries are logged and dropped.

    The indexer must report the call outcome. An entry without a status
    is not evidence of a successful call.
    """
    if not isinstance(tx, dict):
        bt.logging.warning({"tenderly_client": {"skipped_transaction": repr(tx)[:80], "error": "not an object"}})
        return None
    if tx.get("status") is None:
        bt.logging.warning({"tenderly_client": {"skipped_transaction": tx.get("hash"), "error": "missing status"}})
        return None
    try:
        return TransactionRecord.model_validate(tx)
    except ValidationError as e:
        bt.logging.warning({"tenderly_client": {"skipped_transaction": tx.get("hash"), "error": str(e)}})
        return None


class TenderlyClient:
    """Reads function call history from the Tenderly project API."""

    def __init__(
        self,
        account: str,
        project: str,
        access_key: str,
        base_url: str = "https://api.tenderly.co",
        network_id: str = "1",
        timeout: float = 60.0,
        max_retries: int = 3,
        page_size: int = 100,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.account = account
        self.project = project
        self.network_id = network_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"X-Access-Key": access_key}
        self._max_retries = max_retries
        self._page_size = page_size

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def _transactions_url(self) -> str:
        return f"{self.base_url}/api/v1/account/{self.account}/project/{self.project}/transactions"

    async def _get(self, url: str, params: dict[str, Any]) -> httpx.Response:
        """GET with retry on transport errors."""
        for attempt in range(self._max_retries):
            try:
                return await self._client.get(url, params=params, headers=self._headers)
            except httpx.TransportError as e:
                if attempt == self._max_retries - 1:
                    raise IndexerUnavailable(f"Tenderly unreachable: {e}") from e
                wait = 2 ** attempt
                bt.logging.warning({"tenderly_client": {"retry": attempt, "wait": wait, "error": str(e)}})
                await asyncio.sleep(wait)
            except httpx.HTTPError as e:
                raise IndexerUnavailable(f"Tenderly request failed: {e}") from e
        raise IndexerUnavailable("Max retries exceeded")

    async def fetch_call_history(
        self, contract_address: str, method_signature: str,
    ) -> list[TransactionRecord]:
        """Page through all calls of `method_signature` on the contract."""
        records: list[TransactionRecord] = []
        page = 1
        while True:
            params = {
                "contractId[]": f"eth:{self.network_id}:{contract_address.lower()}",
                "functionSignature": method_signature,
                "page": page,
                "perPage": self._page_size,
            }
            resp = await self._get(self._transactions_url, params)
            if resp.status_code != 200:
                raise IndexerUnavailable(
                    f"Tenderly request failed: {resp.status_code} {resp.text[:200]}"
                )

            try:
                body = resp.json()
            except ValueError as e:
                raise IndexerUnavailable(f"Tenderly returned invalid JSON: {e}") from e
            batch = _transactions(body)
            for tx in batch:
                record = _parse_transaction(tx)
                if record is not None:
                    records.append(record)

            if len(batch) < self._page_size:
                break
            page += 1

        bt.logging.debug({
            "tenderly_client": {
                "contract": contract_address,
                "method": method_signature,
                "transactions": len(records),
                "pages": page,
            }
        })
        return records


__all__ = [
    "IndexerAbsent",
    "IndexerAvailable",
    "IndexerCapability",
    "TenderlyClient",
    "TransactionIndexer",
]
