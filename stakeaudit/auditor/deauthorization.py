"""Sortition pool deauthorizations within an audit interval.

The ledger keeps no queryable history of secondary authorizations, so
revocations are recovered from successful `deauthorizeSortitionPoolContract`
calls. Those calls are fetched from the indexer when it is available and
accumulated in the transaction cache; the scan itself only reads the cache.
"""

from __future__ import annotations

from typing import Iterable

import bittensor as bt
from web3 import Web3

from stakeaudit.ledger.errors import IndexerUnavailable, MalformedRecord
from stakeaudit.ledger.indexer import IndexerAvailable, IndexerCapability
from stakeaudit.ledger.models import (
    DEAUTHORIZE_METHOD,
    DEAUTHORIZE_SIGNATURE,
    Interval,
    TransactionRecord,
    normalize_address,
)
from stakeaudit.ledger.store.interface import TransactionCache


def decode_deauthorization(record: TransactionRecord) -> tuple[str, str]:
    """Return (operator, sortition_pool) from a deauthorization call.

    Raises MalformedRecord when the decoded input is missing or does not
    carry two address arguments.
    """
    args = record.decoded_input
    if not args or len(args) < 2:
        raise MalformedRecord(f"transaction {record.hash}: expected 2 decoded arguments")

    operator, pool = args[0].value, args[1].value
    for name, value in (("operator", operator), ("sortition pool", pool)):
        if not isinstance(value, str) or not Web3.is_address(value.lower()):
            raise MalformedRecord(f"transaction {record.hash}: invalid {name} argument {value!r}")
    return operator, pool


def compute_deauthorized_set(
    records: Iterable[TransactionRecord],
    interval: Interval,
    pool_address: str,
) -> frozenset[str]:
    """Lower-cased operators deauthorized from `pool_address` within `interval`."""
    pool = normalize_address(pool_address)
    deauthorized: set[str] = set()

    for record in records:
        if not record.succeeded:
            continue

        if not interval.contains(record.block_number):
            bt.logging.debug({
                "deauthorization_scan": {"skip": record.hash, "block": record.block_number}
            })
            continue

        try:
            operator, input_pool = decode_deauthorization(record)
        except MalformedRecord as e:
            bt.logging.warning({"deauthorization_scan": {"malformed_record": str(e)}})
            continue

        if normalize_address(input_pool) != pool:
            bt.logging.debug({
                "deauthorization_scan": {"skip": record.hash, "sortition_pool": input_pool}
            })
            continue

        deauthorized.add(normalize_address(operator))

    return frozenset(deauthorized)


class DeauthorizationScanner:
    """Refreshes cached deauthorizations and filters them for one run."""

    def __init__(
        self,
        cache: TransactionCache,
        indexer: IndexerCapability,
        keep_bonding: str,
    ):
        self.cache = cache
        self.indexer = indexer
        self.keep_bonding = keep_bonding

    async def refresh_cache(self, indexer: IndexerAvailable) -> int:
        """Store successful deauthorization calls from the indexer.

        Returns the number of records stored. Raises IndexerUnavailable.
        """
        bt.logging.info({"deauthorization_scan": "refreshing_cache"})
        history = await indexer.client.fetch_call_history(self.keep_bonding, DEAUTHORIZE_SIGNATURE)
        successful = [tx for tx in history if tx.succeeded]
        await self.cache.store(successful)
        bt.logging.info({
            "deauthorization_scan": {"fetched": len(history), "stored": len(successful)}
        })
        return len(successful)

    async def scan(self, interval: Interval, pool_address: str) -> frozenset[str]:
        """Compute the deauthorized operator set for `interval`.

        Indexer and cache-refresh failures degrade to the cached data and
        are logged once; they never fail the scan.
        """
        if isinstance(self.indexer, IndexerAvailable):
            try:
                await self.refresh_cache(self.indexer)
            except IndexerUnavailable as e:
                bt.logging.warning({
                    "deauthorization_scan": {"indexer_unavailable": str(e), "using": "cache_only"}
                })
            except Exception as e:
                bt.logging.warning({
                    "deauthorization_scan": {
                        "refresh_failed": f"{type(e).__name__}: {e}",
                        "using": "cache_only",
                    }
                })
        else:
            bt.logging.warning({
                "deauthorization_scan": {"indexer_absent": self.indexer.reason, "using": "cache_only"}
            })

        records = await self.cache.get_transactions_for_method(self.keep_bonding, DEAUTHORIZE_METHOD)
        bt.logging.debug({"deauthorization_scan": {"cached_deauthorizations": len(records)}})

        deauthorized = compute_deauthorized_set(records, interval, pool_address)
        if deauthorized:
            bt.logging.info({
                "deauthorization_scan": {"deauthorized_in_interval": sorted(deauthorized)}
            })
        return deauthorized


__all__ = ["DeauthorizationScanner", "compute_deauthorized_set", "decode_deauthorization"]
