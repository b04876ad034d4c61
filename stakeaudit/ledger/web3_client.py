"""web3-backed LedgerClient for the staking contracts.

Only the view methods the audit reads are included in the ABI. Reverted
calls become PermanentLedgerError; node errors about pruned state become
HistoryUnavailable. Everything else propagates to the retrying reader,
which decides whether it is transient.
"""

from __future__ import annotations

from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from .errors import HistoryUnavailable, PermanentLedgerError


def _view(name: str, inputs: list[tuple[str, str]], output: str) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": output}],
    }


AUTHORIZATION_ABI: list[dict[str, Any]] = [
    # BondedECDSAKeepFactory
    _view("getSortitionPool", [("_application", "address")], "address"),
    _view("isOperatorAuthorized", [("_operator", "address")], "bool"),
    # KeepBonding
    _view(
        "hasSecondaryAuthorization",
        [("_operator", "address"), ("_poolAddress", "address")],
        "bool",
    ),
]

# Messages returned by non-archive nodes for state older than their retention.
HISTORY_MARKERS = (
    "missing trie node",
    "header not found",
    "state not available",
    "state is not available",
    "pruned",
)


def _is_history_error(exc: BaseException) -> bool:
    msg = str(exc).lower()
    return any(marker in msg for marker in HISTORY_MARKERS)


def _to_call_arg(value: Any) -> Any:
    if isinstance(value, str) and Web3.is_address(value.lower()):
        return Web3.to_checksum_address(value)
    return value


class Web3LedgerClient:
    """Historical contract reads over JSON-RPC (requires an archive node)."""

    def __init__(self, rpc_url: str, timeout: float = 30.0, abi: list[dict[str, Any]] | None = None):
        self.rpc_url = rpc_url
        self._abi = abi or AUTHORIZATION_ABI
        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )
        self._contracts: dict[str, Any] = {}

    def _contract(self, address: str) -> Any:
        checksum = Web3.to_checksum_address(address)
        if checksum not in self._contracts:
            self._contracts[checksum] = self._w3.eth.contract(address=checksum, abi=self._abi)
        return self._contracts[checksum]

    async def read_at(
        self, contract: str, method: str, args: tuple[Any, ...], block: int | None = None,
    ) -> Any:
        fn = self._contract(contract).get_function_by_name(method)
        call_args = [_to_call_arg(a) for a in args]
        block_identifier = block if block is not None else "latest"
        try:
            return await fn(*call_args).call(block_identifier=block_identifier)
        except (ContractLogicError, BadFunctionCallOutput) as e:
            raise PermanentLedgerError(f"{contract}.{method} reverted: {e}") from e
        except Exception as e:
            if block is not None and _is_history_error(e):
                raise HistoryUnavailable(
                    f"no state for {contract}.{method} at block {block}: {e}"
                ) from e
            raise


__all__ = ["AUTHORIZATION_ABI", "HISTORY_MARKERS", "Web3LedgerClient"]
