"""Network presets and settings loading."""

from ton_jetton_gateway.data.loader import (
    get_network_config,
    get_supported_networks,
    load_networks,
    load_settings,
)

__all__ = [
    "get_network_config",
    "get_supported_networks",
    "load_networks",
    "load_settings",
]
