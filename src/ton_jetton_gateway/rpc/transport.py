"""Raw get-method transport over the toncenter v2 JSON-RPC HTTP API."""

import base64
import itertools
import logging
from typing import Any, Protocol

import httpx
from pytoniq_core import Address, begin_cell

from ton_jetton_gateway.core.models import GetMethodResult, StackEntry, StackEntryType
from ton_jetton_gateway.exceptions import (
    OverloadError,
    PermanentRPCError,
    RPCError,
    TransientRPCError,
)

logger = logging.getLogger(__name__)

# TVM exit codes 0 and 1 both mean the get-method completed normally
SUCCESS_EXIT_CODES = frozenset({0, 1})


class RPCTransport(Protocol):
    """Anything able to run a contract get-method and classify its failures."""

    def run_get_method(
        self,
        address: str,
        method: str,
        stack: list[StackEntry] | None = None,
    ) -> GetMethodResult:
        """
        Run a get-method on a contract.

        Raises
        ------
        RPCError
            Subclass tagged with the ErrorKind of the failure

        """
        ...


class ToncenterTransport:
    """
    Client for the toncenter v2 JSON-RPC API.

    Each call is a single HTTP request bounded by ``timeout``; retries and
    rate limiting are left to the caller.

    Parameters
    ----------
    endpoint : str
        JSON-RPC endpoint URL
    api_key : str | None
        Optional toncenter API key
    timeout : float
        Per-request timeout in seconds
    transport : httpx.BaseTransport | None
        Custom httpx transport (used by tests)

    """

    DEFAULT_ENDPOINT = "https://toncenter.com/api/v2/jsonRPC"

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        headers = {"X-API-Key": api_key} if api_key else {}
        self.client = httpx.Client(timeout=timeout, headers=headers, transport=transport)
        self._ids = itertools.count(1)

    def run_get_method(
        self,
        address: str,
        method: str,
        stack: list[StackEntry] | None = None,
    ) -> GetMethodResult:
        """
        Run a get-method on a contract.

        Parameters
        ----------
        address : str
            Contract address
        method : str
            Get-method name (e.g., 'get_wallet_address')
        stack : list[StackEntry] | None
            Method arguments

        Returns
        -------
        GetMethodResult
            Decoded result stack

        Raises
        ------
        OverloadError
            If the endpoint answered with a too-many-requests status
        TransientRPCError
            On timeouts, connection failures and 5xx responses
        PermanentRPCError
            On other failures, including non-zero TVM exit codes

        """
        payload = {
            "id": next(self._ids),
            "jsonrpc": "2.0",
            "method": "runGetMethod",
            "params": {
                "address": address,
                "method": method,
                "stack": [self._encode_entry(entry) for entry in stack or []],
            },
        }

        logger.debug("runGetMethod %s on %s", method, address)
        try:
            response = self.client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            msg = f"Request timeout: {e}"
            raise TransientRPCError(msg) from e
        except httpx.HTTPError as e:
            msg = f"HTTP request failed: {e}"
            raise TransientRPCError(msg) from e

        if response.status_code >= 400:
            raise self._error_for_status(response.status_code, self._error_text(response))

        try:
            data = response.json()
        except ValueError as e:
            msg = f"Unparseable response from {self.endpoint}: {e}"
            raise PermanentRPCError(msg) from e

        if not isinstance(data, dict):
            msg = f"Unexpected response from {self.endpoint}: expected a JSON object, got {type(data).__name__}"
            raise PermanentRPCError(msg)

        if not data.get("ok", False):
            code = data.get("code")
            error = data.get("error", "unknown error")
            raise self._error_for_status(code if isinstance(code, int) else None, str(error))

        result = data.get("result") or {}
        exit_code = int(result.get("exit_code", 0))
        if exit_code not in SUCCESS_EXIT_CODES:
            msg = f"{method} on {address} exited with code {exit_code}"
            raise PermanentRPCError(msg)

        return GetMethodResult(
            stack=[self._decode_entry(item) for item in result.get("stack", [])],
            exit_code=exit_code,
            gas_used=result.get("gas_used"),
        )

    @staticmethod
    def _error_for_status(status_code: int | None, detail: str) -> RPCError:
        msg = f"HTTP error {status_code}: {detail}" if status_code else detail
        if status_code == 429:
            return OverloadError(msg, status_code=status_code)
        if status_code is not None and status_code >= 500:
            return TransientRPCError(msg, status_code=status_code)
        return PermanentRPCError(msg, status_code=status_code)

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict) and "error" in data:
            return str(data["error"])
        return response.text

    @staticmethod
    def _encode_entry(entry: StackEntry) -> list[Any]:
        """Convert a StackEntry to toncenter's ``[type, value]`` form."""
        if entry.type is StackEntryType.NUM:
            return ["num", hex(int(entry.value))]
        if entry.type is StackEntryType.ADDRESS:
            try:
                address = Address(str(entry.value))
            except Exception as e:
                msg = f"Invalid TON address {entry.value!r}: {e}"
                raise PermanentRPCError(msg) from e
            cell = begin_cell().store_address(address).end_cell()
            return ["tvm.Slice", base64.b64encode(cell.to_boc()).decode()]
        if entry.type is StackEntryType.SLICE:
            return ["tvm.Slice", entry.value]
        return ["tvm.Cell", entry.value]

    @staticmethod
    def _decode_entry(item: Any) -> StackEntry:
        """Convert a toncenter ``[type, value]`` stack item to a StackEntry."""
        if not isinstance(item, list | tuple) or len(item) != 2:
            msg = f"Unexpected stack item: {item!r}"
            raise PermanentRPCError(msg)

        kind, value = item
        try:
            if kind == "num":
                text = str(value)
                number = int(text, 16) if text.lstrip("-").startswith("0x") else int(text)
                return StackEntry.num(number)
            if kind in ("cell", "slice"):
                boc = value["bytes"] if isinstance(value, dict) else str(value)
                return StackEntry(type=StackEntryType(kind), value=boc)
        except (KeyError, ValueError) as e:
            msg = f"Malformed {kind} stack item: {e}"
            raise PermanentRPCError(msg) from e

        msg = f"Unsupported stack item type: {kind!r}"
        raise PermanentRPCError(msg)

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def __enter__(self) -> "ToncenterTransport":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
