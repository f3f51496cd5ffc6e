"""Pytest configuration and shared test doubles for ton-jetton-gateway tests."""

from collections import defaultdict
from typing import Any

import pytest

from ton_jetton_gateway.core.models import GetMethodResult, JettonToken, StackEntry

USDT_MASTER = "EQCxE6mUtQJKFnGfaROTKOt1lZbDiiX1kCixRv7Nw2Id_sDs"
OWNER = "0:" + "a1" * 32
OTHER_OWNER = "0:" + "c3" * 32
WALLET = "0:" + "b2" * 32


class FakeClock:
    """Manual clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    """
    Scripted RPCTransport.

    Outcomes are queued per get-method name; the last one repeats. An outcome
    that is an exception is raised instead of returned.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, list[StackEntry] | None]] = []
        self._outcomes: dict[str, list[Any]] = defaultdict(list)
        self.closed = False

    def respond(self, method: str, *outcomes: Any) -> "FakeTransport":
        self._outcomes[method].extend(outcomes)
        return self

    def run_get_method(
        self,
        address: str,
        method: str,
        stack: list[StackEntry] | None = None,
    ) -> GetMethodResult:
        self.calls.append((address, method, stack))
        outcomes = self._outcomes[method]
        if not outcomes:
            msg = f"no outcome scripted for {method}"
            raise AssertionError(msg)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def reset(self, method: str) -> None:
        self._outcomes[method].clear()

    def count(self, method: str | None = None) -> int:
        return sum(1 for _, called, _ in self.calls if method is None or called == method)

    def close(self) -> None:
        self.closed = True


def wallet_result(address: str = WALLET) -> GetMethodResult:
    return GetMethodResult(stack=[StackEntry.address(address)])


def balance_result(units: int) -> GetMethodResult:
    return GetMethodResult(stack=[StackEntry.num(units)])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def usdt() -> JettonToken:
    return JettonToken(master_address=USDT_MASTER, symbol="USDT", decimals=6)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove gateway environment variables so presets are used as-is."""
    for var in ("TON_NETWORK", "TON_API_ENDPOINT", "TON_API_KEY", "TON_JETTON_MASTER", "TON_JETTON_DECIMALS"):
        monkeypatch.delenv(var, raising=False)
