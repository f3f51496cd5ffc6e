"""Tests for Pydantic data models."""

import pytest

from conftest import OWNER, USDT_MASTER
from ton_jetton_gateway.core.models import (
    GatewaySettings,
    GetMethodResult,
    JettonToken,
    StackEntry,
    StackEntryType,
    normalize_address,
)


def test_stack_entry_constructors():
    """Test typed stack entry helpers."""
    assert StackEntry.num(5) == StackEntry(type=StackEntryType.NUM, value=5)
    assert StackEntry.address(OWNER).type is StackEntryType.ADDRESS
    assert StackEntry.cell("te6cc").type is StackEntryType.CELL


def test_read_int():
    """Test reading numeric entries."""
    result = GetMethodResult(stack=[StackEntry.num(1_500_000), StackEntry.address(OWNER)])

    assert result.read_int() == 1_500_000
    with pytest.raises(ValueError, match="expected num"):
        result.read_int(1)
    with pytest.raises(ValueError, match="no entry at index 2"):
        result.read_int(2)


def test_read_address_normalizes():
    """Test raw addresses come back in user-friendly form."""
    result = GetMethodResult(stack=[StackEntry.address(OWNER), StackEntry.num(1)])

    address = result.read_address(0)

    assert address == normalize_address(OWNER)
    assert address.startswith("EQ")
    with pytest.raises(ValueError, match="expected an address"):
        result.read_address(1)


def test_normalize_address():
    """Test raw and user-friendly forms normalize to the same value."""
    friendly = normalize_address(USDT_MASTER)

    assert friendly.startswith("EQ")
    assert normalize_address(friendly) == friendly

    with pytest.raises(ValueError, match="Invalid TON address"):
        normalize_address("0xdeadbeef")


def test_jetton_token_defaults():
    """Test JettonToken model."""
    token = JettonToken(master_address=USDT_MASTER)

    assert token.symbol == "USDT"
    assert token.decimals == 6


def test_settings_redacted():
    """Test the API key is masked for display."""
    settings = GatewaySettings(
        endpoint="https://toncenter.com/api/v2/jsonRPC",
        api_key="secret",
        token=JettonToken(master_address=USDT_MASTER),
    )

    assert settings.redacted()["api_key"] == "***"
    assert settings.api_key == "secret"
