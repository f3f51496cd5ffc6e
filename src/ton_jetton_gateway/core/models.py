"""Data models for get-method calls, tokens and gateway settings."""

import base64
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field
from pytoniq_core import Address, Cell


class StackEntryType(StrEnum):
    """Type tag of a TVM stack entry."""

    NUM = "num"
    ADDRESS = "address"
    CELL = "cell"
    SLICE = "slice"


class StackEntry(BaseModel):
    """
    Single TVM stack value passed to or returned from a get-method.

    Attributes
    ----------
    type : StackEntryType
        Entry type
    value : int | str
        Integer for ``num``, user-friendly address for ``address``,
        base64-encoded BOC for ``cell`` and ``slice``

    """

    type: StackEntryType
    value: int | str

    @classmethod
    def num(cls, value: int) -> "StackEntry":
        return cls(type=StackEntryType.NUM, value=value)

    @classmethod
    def address(cls, value: str) -> "StackEntry":
        return cls(type=StackEntryType.ADDRESS, value=value)

    @classmethod
    def cell(cls, boc: str) -> "StackEntry":
        return cls(type=StackEntryType.CELL, value=boc)


class GetMethodResult(BaseModel):
    """
    Result of running a contract get-method.

    Attributes
    ----------
    stack : list[StackEntry]
        Returned stack, top of the stack first
    exit_code : int
        TVM exit code (0 on success)
    gas_used : int | None
        Gas consumed, if reported

    """

    stack: list[StackEntry] = Field(default_factory=list)
    exit_code: int = 0
    gas_used: int | None = None

    def _entry(self, index: int) -> StackEntry:
        try:
            return self.stack[index]
        except IndexError:
            msg = f"stack has {len(self.stack)} entries, no entry at index {index}"
            raise ValueError(msg) from None

    def read_int(self, index: int = 0) -> int:
        """
        Read an integer stack entry.

        Raises
        ------
        ValueError
            If the entry is missing or not a number

        """
        entry = self._entry(index)
        if entry.type is not StackEntryType.NUM or not isinstance(entry.value, int):
            msg = f"stack entry {index} is {entry.type}, expected num"
            raise ValueError(msg)
        return entry.value

    def read_address(self, index: int = 0) -> str:
        """
        Read an address stack entry, decoding it from a cell or slice if needed.

        Returns
        -------
        str
            Bounceable, url-safe user-friendly address

        Raises
        ------
        ValueError
            If the entry is missing or does not hold an address

        """
        entry = self._entry(index)
        if entry.type is StackEntryType.ADDRESS:
            return normalize_address(str(entry.value))
        if entry.type in (StackEntryType.CELL, StackEntryType.SLICE):
            cell = Cell.one_from_boc(base64.b64decode(str(entry.value)))
            address = cell.begin_parse().load_address()
            if address is None:
                msg = f"stack entry {index} holds an empty address"
                raise ValueError(msg)
            return address.to_str()
        msg = f"stack entry {index} is {entry.type}, expected an address"
        raise ValueError(msg)


def normalize_address(address: str) -> str:
    """
    Convert any raw or user-friendly TON address to its bounceable url-safe form.

    Raises
    ------
    ValueError
        If the address cannot be parsed

    """
    try:
        return Address(address).to_str()
    except Exception as e:
        msg = f"Invalid TON address {address!r}: {e}"
        raise ValueError(msg) from e


class JettonToken(BaseModel):
    """
    Jetton tracked by the gateway.

    Attributes
    ----------
    master_address : str
        Jetton master contract address
    symbol : str
        Token symbol (e.g., 'USDT')
    decimals : int
        Number of decimal places of the base unit

    """

    master_address: str
    symbol: str = "USDT"
    decimals: int = Field(default=6, ge=0, le=255)


class GatewaySettings(BaseModel):
    """
    Configuration for the RPC endpoint, tracked jetton and resilience tuning.

    All durations are in seconds.

    """

    network: str = "mainnet"
    endpoint: str
    api_key: str | None = None
    token: JettonToken
    request_timeout: float = Field(default=10.0, gt=0)

    rate_limit_threshold: int = Field(default=100, ge=1)
    rate_limit_window: float = Field(default=60.0, gt=0)
    base_backoff: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=30.0, ge=0)
    max_backoff_multiplier: int = Field(default=16, ge=1)

    max_attempts: int = Field(default=4, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_growth_factor: float = Field(default=1.5, ge=1)

    wallet_address_ttl: float = 600.0
    raw_balance_ttl: float = 120.0
    display_balance_ttl: float = 120.0

    def redacted(self) -> dict[str, Any]:
        """Settings as a dict with the API key masked, for display."""
        data = self.model_dump()
        if data.get("api_key"):
            data["api_key"] = "***"
        return data
