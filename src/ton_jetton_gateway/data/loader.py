"""Network preset and settings loader."""

import os
from collections.abc import Mapping
from functools import cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ton_jetton_gateway.core.models import GatewaySettings
from ton_jetton_gateway.exceptions import ConfigurationError

DEFAULT_NETWORK = "mainnet"

# Environment variable -> settings field
ENV_SETTINGS = {
    "TON_API_ENDPOINT": "endpoint",
    "TON_API_KEY": "api_key",
    "TON_JETTON_MASTER": "master_address",
    "TON_JETTON_DECIMALS": "decimals",
}

TOKEN_FIELDS = frozenset({"master_address", "symbol", "decimals"})


@cache
def load_networks() -> dict[str, Any]:
    """
    Load network presets from networks.yaml.

    Returns
    -------
    dict[str, Any]
        Mapping of network name to preset

    """
    path = Path(__file__).parent / "networks.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)["networks"]


def get_supported_networks() -> list[str]:
    """
    Get list of all preset network names.

    Returns
    -------
    list[str]
        List of network names

    """
    return list(load_networks().keys())


def get_network_config(network: str) -> dict[str, Any]:
    """
    Get the preset for a network.

    Parameters
    ----------
    network : str
        Network name (e.g., 'mainnet', 'testnet')

    Returns
    -------
    dict[str, Any]
        Copy of the preset, safe to modify

    Raises
    ------
    ConfigurationError
        If the network is unknown

    """
    networks = load_networks()
    if network not in networks:
        msg = f"Unknown network {network!r}, expected one of: {', '.join(networks)}"
        raise ConfigurationError(msg)

    preset = networks[network]
    return {**preset, "token": dict(preset.get("token") or {})}


def load_settings(
    network: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> GatewaySettings:
    """
    Build gateway settings from a preset, the environment and explicit overrides.

    Later sources win: preset, then environment variables, then ``overrides``.
    Override keys are GatewaySettings fields, plus ``master_address``,
    ``symbol`` and ``decimals`` for the token. None values are ignored.

    Parameters
    ----------
    network : str | None
        Preset name. Falls back to TON_NETWORK, then 'mainnet'.
    overrides : Mapping[str, Any] | None
        Explicit setting values
    environ : Mapping[str, str] | None
        Environment to read. Uses os.environ if None.

    Returns
    -------
    GatewaySettings
        Validated settings

    Raises
    ------
    ConfigurationError
        If the network is unknown or the resulting settings are invalid

    """
    env = os.environ if environ is None else environ
    network = network or env.get("TON_NETWORK") or DEFAULT_NETWORK

    data = get_network_config(network)
    data["network"] = network

    values: dict[str, Any] = {field: env[var] for var, field in ENV_SETTINGS.items() if env.get(var)}
    values.update({key: value for key, value in (overrides or {}).items() if value is not None})

    for key, value in values.items():
        if key in TOKEN_FIELDS:
            data["token"][key] = value
        else:
            data[key] = value

    if not data["token"].get("master_address"):
        msg = f"No jetton master address configured for {network}; set TON_JETTON_MASTER"
        raise ConfigurationError(msg)

    try:
        return GatewaySettings.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid settings for {network}: {e}"
        raise ConfigurationError(msg) from e
