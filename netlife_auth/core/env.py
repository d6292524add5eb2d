"""
Centralized environment detection utilities.

All checks read ENV only. Callers that need to decide whether error detail
may be returned to clients, or whether dev-only behaviour is allowed, should
go through these helpers instead of reading os.environ directly.
"""
import os
from functools import lru_cache


@lru_cache(maxsize=1)
def get_env_name() -> str:
    """
    Get the current environment name from ENV variable.

    Returns:
        Environment name (lowercase): 'local', 'dev', 'staging', 'prod', etc.
        Defaults to 'dev' if not set.
    """
    return os.getenv("ENV", "dev").lower()


@lru_cache(maxsize=1)
def is_local_env() -> bool:
    """True if ENV is 'local', 'dev' or 'development'."""
    return get_env_name() in {"local", "dev", "development"}


@lru_cache(maxsize=1)
def is_production_env() -> bool:
    """True if ENV is 'prod' or 'production'."""
    return get_env_name() in {"prod", "production"}


def clear_env_cache() -> None:
    """Reset cached environment lookups (used when ENV changes at runtime, e.g. in tests)."""
    get_env_name.cache_clear()
    is_local_env.cache_clear()
    is_production_env.cache_clear()
