"""Cached, rate-limited jetton wallet and balance lookups."""

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal

from ton_jetton_gateway.core.models import GatewaySettings, JettonToken, StackEntry, normalize_address
from ton_jetton_gateway.core.units import amount_to_units, units_to_amount
from ton_jetton_gateway.rpc.cache import RPCCache
from ton_jetton_gateway.rpc.limiter import RateLimiter
from ton_jetton_gateway.rpc.retry import RetryConfig, RetryPolicy
from ton_jetton_gateway.rpc.transport import RPCTransport, ToncenterTransport

logger = logging.getLogger(__name__)


def _cache_address(address: str) -> str:
    """Canonical form of an address for cache keys, so raw and friendly forms share an entry."""
    try:
        return normalize_address(address)
    except ValueError:
        # Unparseable addresses are rejected by the transport; keep the key as given
        return address


class JettonService:
    """
    Facade over the RPC transport for one tracked jetton.

    Workflow for a balance lookup:
    1. Check the cache for the display balance
    2. Derive the owner's jetton wallet (cached for a long time)
    3. Fetch the raw wallet balance (cached briefly)
    4. Convert base units to a display amount and cache it

    Every network attempt goes through the retry policy, which gates it on
    the shared rate limiter.

    Parameters
    ----------
    transport : RPCTransport
        Raw get-method transport
    token : JettonToken
        Jetton whose balances are looked up
    cache : RPCCache | None
        Shared response cache
    retry_policy : RetryPolicy | None
        Retry policy; its limiter becomes ``self.limiter``
    wallet_address_ttl : float
        TTL for derived wallet addresses
    raw_balance_ttl : float
        TTL for raw wallet balances
    display_balance_ttl : float
        TTL for converted owner balances

    """

    def __init__(
        self,
        transport: RPCTransport,
        token: JettonToken,
        *,
        cache: RPCCache | None = None,
        retry_policy: RetryPolicy | None = None,
        wallet_address_ttl: float = 600.0,
        raw_balance_ttl: float = 120.0,
        display_balance_ttl: float = 120.0,
    ) -> None:
        self.transport = transport
        self.token = token
        self.cache = cache or RPCCache()
        self.retry_policy = retry_policy or RetryPolicy(RateLimiter())
        self.limiter = self.retry_policy.limiter
        self.wallet_address_ttl = wallet_address_ttl
        self.raw_balance_ttl = raw_balance_ttl
        self.display_balance_ttl = display_balance_ttl

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        transport: RPCTransport | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "JettonService":
        """
        Build a service with its cache, limiter and retry policy from settings.

        Parameters
        ----------
        settings : GatewaySettings
            Loaded gateway settings
        transport : RPCTransport | None
            Transport to use. A ToncenterTransport for the configured endpoint if None.
        clock : Callable[[], float]
            Time source shared by the cache and limiter
        sleep : Callable[[float], None]
            Wait function shared by the limiter and retry policy

        Returns
        -------
        JettonService
            Ready-to-use service

        """
        if transport is None:
            transport = ToncenterTransport(
                endpoint=settings.endpoint,
                api_key=settings.api_key,
                timeout=settings.request_timeout,
            )

        limiter = RateLimiter(
            threshold=settings.rate_limit_threshold,
            window=settings.rate_limit_window,
            base_backoff=settings.base_backoff,
            max_backoff=settings.max_backoff,
            max_multiplier=settings.max_backoff_multiplier,
            clock=clock,
            sleep=sleep,
        )
        retry_config = RetryConfig(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            growth_factor=settings.retry_growth_factor,
        )

        return cls(
            transport,
            settings.token,
            cache=RPCCache(default_ttl=settings.display_balance_ttl, clock=clock),
            retry_policy=RetryPolicy(limiter, retry_config, sleep=sleep),
            wallet_address_ttl=settings.wallet_address_ttl,
            raw_balance_ttl=settings.raw_balance_ttl,
            display_balance_ttl=settings.display_balance_ttl,
        )

    @staticmethod
    def wallet_address_key(master_address: str, owner_address: str) -> str:
        return f"jetton-wallet:{_cache_address(master_address)}:{_cache_address(owner_address)}"

    @staticmethod
    def raw_balance_key(wallet_address: str) -> str:
        return f"jetton-balance:{_cache_address(wallet_address)}"

    def display_balance_key(self, owner_address: str) -> str:
        return f"display-balance:{_cache_address(self.token.master_address)}:{_cache_address(owner_address)}"

    def get_jetton_wallet_address(self, master_address: str, owner_address: str) -> str:
        """
        Derive the jetton wallet address of an owner.

        Parameters
        ----------
        master_address : str
            Jetton master contract address
        owner_address : str
            Wallet owner address

        Returns
        -------
        str
            Jetton wallet address

        Raises
        ------
        RetryExhaustedError
            If every attempt failed

        """
        key = self.wallet_address_key(master_address, owner_address)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached jetton wallet address for %s", owner_address)
            return cached

        def run_get_wallet_address() -> str:
            result = self.transport.run_get_method(
                master_address,
                "get_wallet_address",
                [StackEntry.address(owner_address)],
            )
            return result.read_address(0)

        wallet_address = self.retry_policy.call(run_get_wallet_address, name="get_wallet_address")
        self.cache.set(key, wallet_address, self.wallet_address_ttl)
        return wallet_address

    def get_raw_balance(self, wallet_address: str) -> int:
        """
        Fetch the balance of a jetton wallet in base units.

        Parameters
        ----------
        wallet_address : str
            Jetton wallet address

        Returns
        -------
        int
            Balance in base units

        Raises
        ------
        RetryExhaustedError
            If every attempt failed

        """
        key = self.raw_balance_key(wallet_address)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached jetton balance for %s", wallet_address)
            return cached

        def run_get_wallet_data() -> int:
            # get_wallet_data returns (balance, owner, jetton master, wallet code)
            result = self.transport.run_get_method(wallet_address, "get_wallet_data")
            return result.read_int(0)

        balance = self.retry_policy.call(run_get_wallet_data, name="get_wallet_data")
        self.cache.set(key, balance, self.raw_balance_ttl)
        return balance

    def fetch_display_balance(self, owner_address: str) -> Decimal:
        """
        Fetch an owner's balance of the tracked jetton in whole tokens.

        Unlike ``get_display_balance`` this propagates failures, so callers can
        tell an unknown balance from a zero one.

        Raises
        ------
        RetryExhaustedError
            If the wallet derivation or balance lookup failed

        """
        key = self.display_balance_key(owner_address)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached %s balance for %s", self.token.symbol, owner_address)
            return cached

        wallet_address = self.get_jetton_wallet_address(self.token.master_address, owner_address)
        logger.debug("%s jetton wallet for %s: %s", self.token.symbol, owner_address, wallet_address)

        raw_balance = self.get_raw_balance(wallet_address)
        balance = units_to_amount(raw_balance, self.token.decimals)
        logger.debug("%s balance for %s: %s", self.token.symbol, owner_address, balance)

        self.cache.set(key, balance, self.display_balance_ttl)
        return balance

    def get_display_balance(self, owner_address: str) -> Decimal:
        """
        Get an owner's balance in whole tokens, falling back to zero on any error.

        Parameters
        ----------
        owner_address : str
            Wallet owner address

        Returns
        -------
        Decimal
            Balance, or ``Decimal("0")`` if it could not be fetched

        """
        try:
            return self.fetch_display_balance(owner_address)
        except Exception:
            logger.exception("Failed to get %s balance for %s", self.token.symbol, owner_address)
            return Decimal("0")

    def get_display_balances(self, owner_addresses: Iterable[str], max_workers: int = 4) -> dict[str, Decimal]:
        """
        Get balances for several owners concurrently.

        Lookups share this service's cache and rate limiter and fail soft per owner.

        Parameters
        ----------
        owner_addresses : Iterable[str]
            Wallet owner addresses
        max_workers : int
            Maximum number of concurrent lookups

        Returns
        -------
        dict[str, Decimal]
            Balance per owner, in input order

        """
        owners = list(dict.fromkeys(owner_addresses))
        if not owners:
            return {}

        balances: dict[str, Decimal] = {}
        with ThreadPoolExecutor(max_workers=min(len(owners), max_workers)) as executor:
            future_to_owner = {executor.submit(self.get_display_balance, owner): owner for owner in owners}
            for future in as_completed(future_to_owner):
                balances[future_to_owner[future]] = future.result()

        return {owner: balances[owner] for owner in owners}

    def amount_to_units(self, amount: Decimal | int | float | str) -> int:
        """Convert a display amount of the tracked jetton to base units, rounding down."""
        return amount_to_units(amount, self.token.decimals)

    def units_to_amount(self, units: int) -> Decimal:
        """Convert base units of the tracked jetton to a display amount."""
        return units_to_amount(units, self.token.decimals)
