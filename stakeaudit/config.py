"""Audit settings loaded from the environment.

Variables follow STAKEAUDIT_<SECTION>__<KEY>, e.g.
STAKEAUDIT_CHAIN__RPC_URL or STAKEAUDIT_RETRY__MAX_ATTEMPTS. A `.env`
file is loaded first unless STAKEAUDIT_TEST_MODE=true.
"""

from __future__ import annotations

import os
from typing import Any, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from stakeaudit.ledger.models import ContractAddresses
from stakeaudit.ledger.reader import RetryPolicy

ENV_PREFIX = "STAKEAUDIT_"


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=20.0, ge=0)
    deadline: float = Field(default=120.0, gt=0)


class TenderlySettings(BaseModel):
    account: str
    project: str
    access_key: str
    base_url: str = "https://api.tenderly.co"
    network_id: str = "1"
    timeout: float = 60.0


class AuditSettings(BaseModel):
    """Everything needed to wire an AuthorizationAuditor."""

    rpc_url: str = Field(min_length=1)
    rpc_timeout: float = 30.0
    contracts: ContractAddresses
    cache_dir: str = "stakeaudit/data/cache"
    max_concurrency: int = Field(default=8, ge=1)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    tenderly: TenderlySettings | None = None

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(**self.retry.model_dump())

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuditSettings:
        """Build settings from STAKEAUDIT_* variables.

        The Tenderly section is only set when an access key is present.
        """
        if environ is None:
            if os.environ.get(f"{ENV_PREFIX}TEST_MODE") != "true":
                load_dotenv()
            environ = os.environ

        def section(name: str) -> dict[str, Any]:
            prefix = f"{ENV_PREFIX}{name}__"
            return {
                key[len(prefix):].lower(): value
                for key, value in environ.items()
                if key.startswith(prefix) and value != ""
            }

        chain = section("CHAIN")
        cache = section("CACHE")
        audit = section("AUDIT")
        tenderly = section("TENDERLY")

        data: dict[str, Any] = {
            "rpc_url": chain.get("rpc_url", ""),
            "contracts": section("CONTRACTS"),
            "retry": section("RETRY"),
            "tenderly": tenderly if tenderly.get("access_key") else None,
        }
        if "timeout" in chain:
            data["rpc_timeout"] = chain["timeout"]
        if "data_dir" in cache:
            data["cache_dir"] = cache["data_dir"]
        if "max_concurrency" in audit:
            data["max_concurrency"] = audit["max_concurrency"]
        return cls.model_validate(data)


__all__ = ["AuditSettings", "RetrySettings", "TenderlySettings"]
