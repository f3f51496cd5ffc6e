"""RPC layer with transport, rate limiting, retry logic and caching."""

from ton_jetton_gateway.rpc.cache import CacheEntry, CacheStats, RPCCache
from ton_jetton_gateway.rpc.limiter import RateLimiter, RateLimitStats
from ton_jetton_gateway.rpc.retry import RetryConfig, RetryPolicy, with_retry
from ton_jetton_gateway.rpc.transport import RPCTransport, ToncenterTransport

__all__ = [
    "CacheEntry",
    "CacheStats",
    "RPCCache",
    "RPCTransport",
    "RateLimitStats",
    "RateLimiter",
    "RetryConfig",
    "RetryPolicy",
    "ToncenterTransport",
    "with_retry",
]
