"""Pydantic models for the authorization audit.

Two groups:
- Ledger facts: Interval, TransactionRecord (as returned by the indexer
  and persisted in the transaction cache)
- Audit output: OperatorAuthorizationVerdict, the sole data contract
  consumed by downstream reward logic
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Contract method names
# ---------------------------------------------------------------------------

DEAUTHORIZE_METHOD = "deauthorizeSortitionPoolContract"
DEAUTHORIZE_SIGNATURE = "deauthorizeSortitionPoolContract(address,address)"


def normalize_address(address: str) -> str:
    """Ledger addresses are case-insensitive identifiers."""
    return address.lower()


# ---------------------------------------------------------------------------
# Audit interval
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """Inclusive block range of one accounting period."""

    model_config = ConfigDict(frozen=True)

    start_block: int = Field(ge=0)
    end_block: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> Interval:
        if self.start_block > self.end_block:
            raise ValueError(
                f"start_block {self.start_block} is after end_block {self.end_block}"
            )
        return self

    def contains(self, block_number: int) -> bool:
        return self.start_block <= block_number <= self.end_block


# ---------------------------------------------------------------------------
# Contract addresses
# ---------------------------------------------------------------------------


class ContractAddresses(BaseModel):
    """Configured contracts the audit reads from."""

    model_config = ConfigDict(frozen=True)

    keep_factory: str = Field(description="BondedECDSAKeepFactory, primary authorization gate")
    keep_bonding: str = Field(description="KeepBonding, secondary authorization gate")
    sanctioned_application: str = Field(
        description="Application whose sortition pool is in scope"
    )


# ---------------------------------------------------------------------------
# Transaction records
# ---------------------------------------------------------------------------


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class DecodedArgument(BaseModel):
    """One decoded call argument, in call order."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    value: Any = None


class TransactionRecord(BaseModel):
    """A historical contract call as reported by the indexer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hash: str
    from_address: str = Field(alias="from")
    to: str
    block_number: int = Field(ge=0)
    method: str
    decoded_input: list[DecodedArgument] | None = None
    status: TransactionStatus = TransactionStatus.SUCCESS

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        # Indexers report call success as a boolean.
        if isinstance(value, bool):
            return TransactionStatus.SUCCESS if value else TransactionStatus.FAILURE
        return value

    @property
    def succeeded(self) -> bool:
        return self.status is TransactionStatus.SUCCESS


# ---------------------------------------------------------------------------
# Audit output
# ---------------------------------------------------------------------------


class OperatorAuthorizationVerdict(BaseModel):
    """Authorization facts for one operator over one interval.

    Carries no eligibility judgement; that is a reward policy decision.
    """

    model_config = ConfigDict(frozen=True)

    operator_address: str
    factory_authorized_at_start: bool
    pool_authorized_at_start: bool
    pool_deauthorized_in_interval: bool


__all__ = [
    "DEAUTHORIZE_METHOD",
    "DEAUTHORIZE_SIGNATURE",
    "ContractAddresses",
    "DecodedArgument",
    "Interval",
    "OperatorAuthorizationVerdict",
    "TransactionRecord",
    "TransactionStatus",
    "normalize_address",
]
