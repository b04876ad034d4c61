"""Operator authorization audit for one reward interval.

For each operator: was the keep factory authorized and the sortition
pool authorized at the interval start, and was the pool deauthorized
during the interval. Authorization flags come from point-in-time reads;
deauthorizations come from one cached scan per audit run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable

import bittensor as bt

from stakeaudit.ledger.errors import InitializationFailed, LedgerReadError
from stakeaudit.ledger.models import (
    ContractAddresses,
    Interval,
    OperatorAuthorizationVerdict,
    normalize_address,
)
from stakeaudit.ledger.reader import LedgerRead, RetryingLedgerReader

from .deauthorization import DeauthorizationScanner


@dataclass
class AuditReport:
    """Outcome of auditing a batch of operators."""

    verdicts: dict[str, OperatorAuthorizationVerdict] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)  # operator -> error

    @property
    def complete(self) -> bool:
        return not self.failures


class AuthorizationAuditor:
    """Audits operator authorizations against one interval and sortition pool."""

    def __init__(
        self,
        reader: RetryingLedgerReader,
        contracts: ContractAddresses,
        interval: Interval,
        sortition_pool: str,
        scanner: DeauthorizationScanner,
    ):
        self.reader = reader
        self.contracts = contracts
        self.interval = interval
        self.sortition_pool = sortition_pool
        self.scanner = scanner

        self._deauthorized: frozenset[str] | None = None
        self._scan_lock = asyncio.Lock()

    @classmethod
    async def initialize(
        cls,
        reader: RetryingLedgerReader,
        contracts: ContractAddresses,
        interval: Interval,
        scanner: DeauthorizationScanner,
    ) -> AuthorizationAuditor:
        """Resolve the sanctioned application's sortition pool and bind an auditor."""
        try:
            sortition_pool = await reader.call(
                LedgerRead(contracts.keep_factory, "getSortitionPool", (contracts.sanctioned_application,))
            )
        except LedgerReadError as e:
            raise InitializationFailed(
                f"cannot resolve sortition pool for {contracts.sanctioned_application}: {e}"
            ) from e

        bt.logging.info({
            "authorization_auditor": {
                "sortition_pool": sortition_pool,
                "start_block": interval.start_block,
                "end_block": interval.end_block,
            }
        })
        return cls(reader, contracts, interval, sortition_pool, scanner)

    async def deauthorized_operators(self) -> frozenset[str]:
        """The run's deauthorized operator set, scanned on first use."""
        if self._deauthorized is None:
            async with self._scan_lock:
                if self._deauthorized is None:
                    self._deauthorized = await self.scanner.scan(self.interval, self.sortition_pool)
        return self._deauthorized

    async def authorizations_at_start(self, operator: str) -> tuple[bool, bool]:
        """(factory authorized, sortition pool authorized) at the interval start block."""
        block = self.interval.start_block
        factory_authorized, pool_authorized = await asyncio.gather(
            self.reader.call(
                LedgerRead(self.contracts.keep_factory, "isOperatorAuthorized", (operator,)),
                at_block=block,
            ),
            self.reader.call(
                LedgerRead(
                    self.contracts.keep_bonding,
                    "hasSecondaryAuthorization",
                    (operator, self.sortition_pool),
                ),
                at_block=block,
            ),
        )
        return bool(factory_authorized), bool(pool_authorized)

    async def audit_operator(self, operator: str) -> OperatorAuthorizationVerdict:
        """Build the authorization verdict for one operator.

        Ledger read failures propagate; no partial verdict is returned.
        """
        bt.logging.debug({"authorization_auditor": {"operator": operator}})

        deauthorized = await self.deauthorized_operators()
        factory_authorized, pool_authorized = await self.authorizations_at_start(operator)

        return OperatorAuthorizationVerdict(
            operator_address=operator,
            factory_authorized_at_start=factory_authorized,
            pool_authorized_at_start=pool_authorized,
            pool_deauthorized_in_interval=normalize_address(operator) in deauthorized,
        )

    async def audit_operators(
        self, operators: Iterable[str], max_concurrency: int = 8,
    ) -> AuditReport:
        """Audit operators concurrently.

        Failures are isolated - one operator's ledger error is recorded in
        the report and doesn't prevent the others from completing.
        """
        semaphore = asyncio.Semaphore(max_concurrency)
        report = AuditReport()

        # Complete the scan before fanning out.
        await self.deauthorized_operators()

        async def _audit(operator: str) -> None:
            async with semaphore:
                try:
                    report.verdicts[operator] = await self.audit_operator(operator)
                except LedgerReadError as e:
                    bt.logging.error({"authorization_auditor": {"operator": operator, "error": str(e)}})
                    report.failures[operator] = str(e)

        # First spelling wins for each address.
        unique: dict[str, str] = {}
        for op in operators:
            unique.setdefault(normalize_address(op), op)

        await asyncio.gather(*(_audit(op) for op in unique.values()))

        bt.logging.info({
            "authorization_auditor": {
                "audited": len(report.verdicts),
                "failed": len(report.failures),
            }
        })
        return report


__all__ = ["AuditReport", "AuthorizationAuditor"]
