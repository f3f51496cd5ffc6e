"""Core models and unit conversion helpers."""

from ton_jetton_gateway.core.models import (
    GatewaySettings,
    GetMethodResult,
    JettonToken,
    StackEntry,
    StackEntryType,
    normalize_address,
)
from ton_jetton_gateway.core.units import amount_to_units, units_to_amount

__all__ = [
    "GatewaySettings",
    "GetMethodResult",
    "JettonToken",
    "StackEntry",
    "StackEntryType",
    "amount_to_units",
    "normalize_address",
    "units_to_amount",
]
