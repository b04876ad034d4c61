"""Tests for audit run wiring."""

from __future__ import annotations

import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest

from stakeaudit.auditor.authorization import AuthorizationAuditor
from stakeaudit.auditor.runtime import build_indexer, open_auditor, run_audit
from stakeaudit.config import AuditSettings, TenderlySettings
from stakeaudit.ledger.indexer import IndexerAbsent, IndexerAvailable, TenderlyClient
from stakeaudit.ledger.models import DEAUTHORIZE_METHOD, ContractAddresses, Interval, TransactionRecord
from stakeaudit.ledger.store.filesystem import FilesystemTransactionCache
from stakeaudit.ledger.store.memory import MemoryTransactionCache

POOL = "0x" + "cd" * 20
OPERATOR = "0x" + "ab" * 20
INTERVAL = Interval(start_block=100, end_block=200)


class StubLedger:
    async def read_at(self, contract, method, args, block=None):
        if method == "getSortitionPool":
            return POOL
        return True


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def settings(tmp_dir):
    return AuditSettings(
        rpc_url="http://127.0.0.1:8545",
        contracts=ContractAddresses(
            keep_factory="0x" + "1" * 40,
            keep_bonding="0x" + "2" * 40,
            sanctioned_application="0x" + "3" * 40,
        ),
        cache_dir=tmp_dir,
        max_concurrency=2,
    )


class TestBuildIndexer:

    def test_absent_without_tenderly(self, settings):
        assert isinstance(build_indexer(settings), IndexerAbsent)

    @pytest.mark.asyncio
    async def test_tenderly_client_when_configured(self, settings):
        settings = settings.model_copy(update={
            "tenderly": TenderlySettings(account="acme", project="rewards", access_key="secret"),
        })
        indexer = build_indexer(settings)
        assert isinstance(indexer, IndexerAvailable)
        assert isinstance(indexer.client, TenderlyClient)
        await indexer.client.close()


class TestOpenAuditor:

    @pytest.mark.asyncio
    async def test_yields_initialized_auditor(self, settings):
        async with open_auditor(settings, INTERVAL, client=StubLedger()) as auditor:
            assert isinstance(auditor, AuthorizationAuditor)
            assert auditor.sortition_pool == POOL
            assert auditor.interval == INTERVAL
            assert isinstance(auditor.scanner.cache, FilesystemTransactionCache)
            assert isinstance(auditor.scanner.indexer, IndexerAbsent)

    @pytest.mark.asyncio
    async def test_empty_memory_cache_is_used(self, settings):
        cache = MemoryTransactionCache()
        async with open_auditor(settings, INTERVAL, client=StubLedger(), cache=cache) as auditor:
            assert auditor.scanner.cache is cache

    @pytest.mark.asyncio
    async def test_closes_tenderly_client(self, settings):
        tenderly = TenderlyClient(account="acme", project="rewards", access_key="secret")
        tenderly.close = AsyncMock()
        indexer = IndexerAvailable(tenderly)

        async with open_auditor(settings, INTERVAL, client=StubLedger(), indexer=indexer):
            pass
        tenderly.close.assert_awaited_once()


class TestRunAudit:

    @pytest.mark.asyncio
    async def test_reports_verdicts(self, settings):
        record = TransactionRecord(
            hash="0x01",
            from_address="0x" + "1" * 40,
            to=settings.contracts.keep_bonding,
            block_number=150,
            method=DEAUTHORIZE_METHOD,
            decoded_input=[
                {"name": "_operator", "value": OPERATOR},
                {"name": "_poolAddress", "value": POOL},
            ],
        )
        indexer = MagicMock()
        indexer.fetch_call_history = AsyncMock(return_value=[record])

        report = await run_audit(
            settings, INTERVAL, [OPERATOR],
            client=StubLedger(), indexer=IndexerAvailable(indexer),
        )

        assert report.complete
        verdict = report.verdicts[OPERATOR]
        assert verdict.factory_authorized_at_start
        assert verdict.pool_authorized_at_start
        assert verdict.pool_deauthorized_in_interval

        # Refreshed records were persisted to the settings' cache directory.
        cache = FilesystemTransactionCache(settings.cache_dir)
        assert len(await cache.get_transactions_for_method(settings.contracts.keep_bonding, DEAUTHORIZE_METHOD)) == 1
