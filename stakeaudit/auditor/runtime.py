"""Audit run wiring.

Builds the ledger client, transaction cache and indexer capability from
AuditSettings, initializes an AuthorizationAuditor for one interval and
closes network clients when the run ends.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable

import bittensor as bt

from stakeaudit.config import AuditSettings
from stakeaudit.ledger.indexer import IndexerAbsent, IndexerAvailable, IndexerCapability, TenderlyClient
from stakeaudit.ledger.models import Interval
from stakeaudit.ledger.reader import LedgerClient, RetryingLedgerReader
from stakeaudit.ledger.store.filesystem import FilesystemTransactionCache
from stakeaudit.ledger.store.interface import TransactionCache
from stakeaudit.ledger.web3_client import Web3LedgerClient

from .authorization import AuditReport, AuthorizationAuditor
from .deauthorization import DeauthorizationScanner


def build_indexer(settings: AuditSettings) -> IndexerCapability:
    if settings.tenderly is None:
        return IndexerAbsent("STAKEAUDIT_TENDERLY__ACCESS_KEY not set")
    t = settings.tenderly
    return IndexerAvailable(TenderlyClient(
        account=t.account,
        project=t.project,
        access_key=t.access_key,
        base_url=t.base_url,
        network_id=t.network_id,
        timeout=t.timeout,
    ))


@asynccontextmanager
async def open_auditor(
    settings: AuditSettings,
    interval: Interval,
    client: LedgerClient | None = None,
    cache: TransactionCache | None = None,
    indexer: IndexerCapability | None = None,
) -> AsyncIterator[AuthorizationAuditor]:
    """Yield an initialized auditor for `interval`.

    `client`, `cache` and `indexer` override the settings-derived defaults.
    Raises InitializationFailed if the sortition pool cannot be resolved.
    """
    if client is None:
        client = Web3LedgerClient(settings.rpc_url, timeout=settings.rpc_timeout)
    if cache is None:
        cache = FilesystemTransactionCache(settings.cache_dir)
    if indexer is None:
        indexer = build_indexer(settings)

    bt.logging.info({
        "audit_run": {
            "start_block": interval.start_block,
            "end_block": interval.end_block,
            "indexer": "available" if isinstance(indexer, IndexerAvailable) else "absent",
        }
    })

    reader = RetryingLedgerReader(client, settings.retry_policy())
    scanner = DeauthorizationScanner(cache, indexer, settings.contracts.keep_bonding)
    try:
        yield await AuthorizationAuditor.initialize(reader, settings.contracts, interval, scanner)
    finally:
        if isinstance(indexer, IndexerAvailable) and isinstance(indexer.client, TenderlyClient):
            await indexer.client.close()
        bt.logging.info({"audit_run": "closed"})


async def run_audit(
    settings: AuditSettings,
    interval: Interval,
    operators: Iterable[str],
    **overrides: Any,
) -> AuditReport:
    """Audit `operators` over `interval` with the configured concurrency."""
    async with open_auditor(settings, interval, **overrides) as auditor:
        return await auditor.audit_operators(operators, max_concurrency=settings.max_concurrency)


__all__ = ["build_indexer", "open_auditor", "run_audit"]
