"""Retrying point-in-time ledger reads.

Every ledger call site goes through RetryingLedgerReader. The retry
behaviour is an explicit RetryPolicy: attempt count, exponential backoff
schedule, an overall per-call deadline, and a transient-error classifier.
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import aiohttp
import bittensor as bt

from .errors import HistoryUnavailable, LedgerUnreachable, PermanentLedgerError

# Substrings of node/provider error messages that indicate a retryable condition.
TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "too many requests",
    "rate limit",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "connection reset",
    "connection refused",
)

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})

# A throttling/gateway status code standing alone, not a run of digits
# inside an address, hash or larger number.
_STATUS_CODE_RE = re.compile(r"(?<![0-9a-fx])(429|502|503|504)(?![0-9a-f])")


def is_transient_error(exc: BaseException) -> bool:
    """Default classifier: network, timeout and throttling failures are transient."""
    if isinstance(exc, (HistoryUnavailable, PermanentLedgerError)):
        return False
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status in TRANSIENT_STATUS_CODES
    if isinstance(exc, (asyncio.TimeoutError, OSError, aiohttp.ClientConnectionError)):
        return True
    msg = str(exc).lower()
    if _STATUS_CODE_RE.search(msg):
        return True
    return any(marker in msg for marker in TRANSIENT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry configuration for ledger reads."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 20.0
    deadline: float = 120.0  # seconds, across all attempts of one call
    classifier: Callable[[BaseException], bool] = is_transient_error

    def backoff(self, attempt: int) -> float:
        """Delay before the attempt following `attempt` (1-based)."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


@dataclass(frozen=True)
class LedgerRead:
    """A read-only contract call: address, method name and arguments."""

    contract: str
    method: str
    args: tuple[Any, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.args)
        return f"{self.contract}.{self.method}({args})"


@runtime_checkable
class LedgerClient(Protocol):
    """Ledger access capable of historical state queries."""

    async def read_at(
        self, contract: str, method: str, args: tuple[Any, ...], block: int | None = None,
    ) -> Any:
        """Execute a read call, pinned to `block` when given (latest otherwise)."""
        ...


class RetryingLedgerReader:
    """Point-in-time reads with bounded retry on transient failure."""

    def __init__(
        self,
        client: LedgerClient,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def call(self, operation: LedgerRead, at_block: int | None = None) -> Any:
        """Execute `operation`, optionally at a historical block.

        Raises:
            HistoryUnavailable: the node has no state at `at_block`.
            PermanentLedgerError: non-transient failure, not retried.
            LedgerUnreachable: attempts or deadline exhausted.
        """
        policy = self.policy
        started = time.monotonic()
        attempts = 0
        last_error: BaseException | None = None

        while attempts < policy.max_attempts:
            remaining = policy.deadline - (time.monotonic() - started)
            if remaining <= 0:
                break

            attempts += 1
            try:
                return await asyncio.wait_for(
                    self.client.read_at(
                        operation.contract, operation.method, operation.args, at_block,
                    ),
                    timeout=remaining,
                )
            except (HistoryUnavailable, PermanentLedgerError):
                raise
            except Exception as e:
                if not policy.classifier(e):
                    raise PermanentLedgerError(f"{operation}: {e}") from e
                last_error = e

            if attempts >= policy.max_attempts:
                break
            wait = policy.backoff(attempts)
            if time.monotonic() - started + wait >= policy.deadline:
                break

            bt.logging.warning({
                "ledger_reader": {
                    "operation": str(operation),
                    "block": at_block,
                    "retry": attempts,
                    "wait": wait,
                    "error": str(last_error),
                }
            })
            await self._sleep(wait)

        raise LedgerUnreachable(operation, at_block, attempts, last_error)


__all__ = [
    "LedgerClient",
    "LedgerRead",
    "RetryPolicy",
    "RetryingLedgerReader",
    "TRANSIENT_MARKERS",
    "is_transient_error",
]
