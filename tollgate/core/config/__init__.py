"""Configuration module for Tollgate.

Provides centralized configuration management with type-safe enums.

Usage:
    from tollgate.core.config import settings, Environment

    # Access settings
    if settings.SIGNUP_FREE_CREDITS > 0:
        ...

    # Use enums for type safety
    if settings.ENVIRONMENT == Environment.PRD:
        ...
"""

from tollgate.core.config.enums import Environment
from tollgate.core.config.settings import Settings

__all__ = [
    "Settings",
    "Environment",
    "settings",
]

# Singleton settings instance
settings = Settings()
