"""Tests for audit data models."""

import pytest
from pydantic import ValidationError

from stakeaudit.ledger.models import (
    DecodedArgument,
    Interval,
    OperatorAuthorizationVerdict,
    TransactionRecord,
    TransactionStatus,
    normalize_address,
)


class TestInterval:

    def test_valid_interval(self):
        interval = Interval(start_block=100, end_block=200)
        assert interval.start_block == 100
        assert interval.end_block == 200

    def test_single_block_interval(self):
        interval = Interval(start_block=5, end_block=5)
        assert interval.contains(5)

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError, match="after end_block"):
            Interval(start_block=201, end_block=200)

    def test_negative_blocks_rejected(self):
        with pytest.raises(ValidationError):
            Interval(start_block=-1, end_block=10)

    def test_contains_is_inclusive(self):
        interval = Interval(start_block=100, end_block=200)
        assert interval.contains(100)
        assert interval.contains(150)
        assert interval.contains(200)
        assert not interval.contains(99)
        assert not interval.contains(201)

    def test_immutable(self):
        interval = Interval(start_block=1, end_block=2)
        with pytest.raises(ValidationError):
            interval.start_block = 0


class TestTransactionRecord:

    def _raw(self, **overrides):
        raw = {
            "hash": "0xfeed",
            "from": "0x" + "1" * 40,
            "to": "0x" + "2" * 40,
            "block_number": 150,
            "method": "deauthorizeSortitionPoolContract",
            "decoded_input": [
                {"name": "_operator", "value": "0x" + "a" * 40},
                {"name": "_poolAddress", "value": "0x" + "b" * 40},
            ],
        }
        raw.update(overrides)
        return raw

    def test_parses_indexer_payload(self):
        record = TransactionRecord.model_validate(self._raw())
        assert record.from_address == "0x" + "1" * 40
        assert record.decoded_input[0] == DecodedArgument(name="_operator", value="0x" + "a" * 40)
        assert record.status is TransactionStatus.SUCCESS

    def test_boolean_status_mapped(self):
        assert TransactionRecord.model_validate(self._raw(status=True)).succeeded
        failed = TransactionRecord.model_validate(self._raw(status=False))
        assert failed.status is TransactionStatus.FAILURE
        assert not failed.succeeded

    def test_missing_decoded_input_allowed(self):
        record = TransactionRecord.model_validate(self._raw(decoded_input=None))
        assert record.decoded_input is None

    def test_json_dump_uses_from_alias(self):
        record = TransactionRecord.model_validate(self._raw())
        dumped = record.model_dump(mode="json", by_alias=True)
        assert dumped["from"] == "0x" + "1" * 40
        assert dumped["status"] == "success"
        assert TransactionRecord.model_validate(dumped) == record


class TestVerdict:

    def test_verdict_is_frozen(self):
        verdict = OperatorAuthorizationVerdict(
            operator_address="0xabc",
            factory_authorized_at_start=True,
            pool_authorized_at_start=True,
            pool_deauthorized_in_interval=False,
        )
        with pytest.raises(ValidationError):
            verdict.pool_deauthorized_in_interval = True


def test_normalize_address():
    assert normalize_address("0xABcDef") == "0xabcdef"
