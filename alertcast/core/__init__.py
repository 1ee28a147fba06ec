from .config import RelaySettings, get_settings, validate_env_vars
from .guards import ChatterRoles, CooldownLedger, has_role
from .logging import setup_logging
from .rate_limiter import RateLimiter, api_limiter, chat_limiter

__all__ = [
    "ChatterRoles",
    "CooldownLedger",
    "RateLimiter",
    "RelaySettings",
    "api_limiter",
    "chat_limiter",
    "get_settings",
    "has_role",
    "setup_logging",
    "validate_env_vars",
]
