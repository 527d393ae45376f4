"""Rate-limited, credential-rotating email lookups."""

from .credentials import Credential, CredentialPool
from .dispatcher import RoundRobinDispatcher
from .email_fetcher import (
    CooldownPolicy,
    EmailFetcher,
    LookupResult,
    LookupStatus,
    clean_identifier,
)
from .rate_limiter import Permit, RateLimiter

__all__ = [
    "CooldownPolicy",
    "Credential",
    "CredentialPool",
    "EmailFetcher",
    "LookupResult",
    "LookupStatus",
    "Permit",
    "RateLimiter",
    "RoundRobinDispatcher",
    "clean_identifier",
]
