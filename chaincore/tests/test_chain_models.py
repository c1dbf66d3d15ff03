"""
Tests for chaincore.models
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from chaincore.metadata import MetadataError, RuntimeMetadata
from chaincore.models import (
    Account,
    ChainEvent,
    ChainProperties,
    DispatchError,
    ExtrinsicStatus,
    TransferInstruction,
    WalletInfo,
    format_amount,
    parse_extrinsic_status,
)


class TestChainProperties:
    def test_scalar_values(self):
        props = ChainProperties.from_rpc({"tokenDecimals": 18, "tokenSymbol": "CESS"})
        assert props.decimals == 18
        assert props.symbol == "CESS"

    def test_list_values_use_native_asset(self):
        props = ChainProperties.from_rpc(
            {"tokenDecimals": [12, 6], "tokenSymbol": ["TCESS", "USDT"]}
        )
        assert props.decimals == 12
        assert props.symbol == "TCESS"

    def test_missing_values_fall_back(self):
        props = ChainProperties.from_rpc({}, default_decimals=10, default_symbol="DOT")
        assert props.decimals == 10
        assert props.symbol == "DOT"

    def test_none_result(self):
        props = ChainProperties.from_rpc(None)
        assert props.decimals == 12
        assert props.symbol == "TCESS"

    def test_frozen(self):
        props = ChainProperties()
        with pytest.raises(ValidationError):
            props.decimals = 3


def test_account_label_prefers_display_name():
    assert Account(address="5Abc", display_name="alice").label == "alice"
    assert Account(address="5Abc").label == "5Abc"


def test_format_amount_has_no_float_rounding():
    assert format_amount(3 * 10**12, 12) == "3.00"
    assert format_amount(2_999_999_999_999, 12, places=12) == "2.999999999999"
    assert format_amount(0, 18) == "0.00"


def test_wallet_info_rejects_negative_balance():
    with pytest.raises(ValidationError):
        WalletInfo(address="5Abc", balance=-1, decimals=12, symbol="TCESS")


def test_wallet_info_display_balance():
    info = WalletInfo(address="5Abc", balance=12_345 * 10**10, decimals=12, symbol="TCESS")
    assert info.display_balance == "123.45"


class TestParseExtrinsicStatus:
    def test_bare_string(self):
        assert parse_extrinsic_status("ready") == (ExtrinsicStatus.READY, None)

    def test_in_block(self):
        assert parse_extrinsic_status({"inBlock": "0xabc"}) == (ExtrinsicStatus.IN_BLOCK, "0xabc")

    def test_finalized(self):
        status, block = parse_extrinsic_status({"finalized": "0xdef"})
        assert status == ExtrinsicStatus.FINALIZED
        assert block == "0xdef"

    def test_broadcast_has_no_block(self):
        assert parse_extrinsic_status({"broadcast": ["peer1", "peer2"]}) == (
            ExtrinsicStatus.BROADCAST,
            None,
        )

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            parse_extrinsic_status("exploded")

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_extrinsic_status({"inBlock": "0x1", "finalized": "0x2"})


class TestDispatchError:
    def test_module_dict_with_byte_array_error(self):
        error = DispatchError.from_value({"Module": {"index": 5, "error": "0x02000000"}})
        assert error.is_module
        assert (error.module_index, error.error_index) == (5, 2)

    def test_module_dict_with_int_error(self):
        error = DispatchError.from_value({"Module": {"index": 6, "error": 3}})
        assert (error.module_index, error.error_index) == (6, 3)

    def test_module_tuple(self):
        error = DispatchError.from_value({"Module": (4, [1, 0, 0, 0])})
        assert (error.module_index, error.error_index) == (4, 1)

    def test_non_module(self):
        error = DispatchError.from_value({"BadOrigin": None})
        assert not error.is_module
        assert str(error) == "BadOrigin"

    def test_non_module_with_payload(self):
        error = DispatchError.from_value({"Token": "FundsUnavailable"})
        assert str(error) == "Token: FundsUnavailable"


def test_chain_event_matches():
    event = ChainEvent(pallet="System", name="ExtrinsicSuccess", extrinsic_index=1)
    assert event.matches("System", "ExtrinsicSuccess")
    assert not event.matches("System", "ExtrinsicFailed")


def test_transfer_instruction_as_call():
    instruction = TransferInstruction(
        pallet="Balances", call="transfer_keep_alive", dest="5Dest", amount=3 * 10**18
    )
    assert instruction.as_call() == {
        "call_module": "Balances",
        "call_function": "transfer_keep_alive",
        "call_args": {"dest": {"Id": "5Dest"}, "value": 3 * 10**18},
    }


def test_runtime_metadata_rejects_garbage():
    with pytest.raises(MetadataError):
        RuntimeMetadata("0x1234")
