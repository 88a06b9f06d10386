"""WikiClient configuration.

Client settings loaded from environment variables with WIKICLIENT_ prefix.

Example:
    >>> from wikiclient.core.config import get_settings
    >>> settings = get_settings(max_retries=5)
    >>> settings.max_retries
    5
    >>> settings.request_timeout
    10.0
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings.

    Loads from environment variables with WIKICLIENT_ prefix. The transport
    and the throttler copy these values on construction; later changes go
    through their properties.

    Example:
        >>> from wikiclient.core.config import Settings
        >>> s = Settings(retry_delay=2.5)
        >>> s.retry_delay
        2.5
        >>> s.modification_interval
        0.0
    """

    model_config = SettingsConfigDict(
        env_prefix="WIKICLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Transport
    request_timeout: float = Field(default=10.0, gt=0.0, description="Timeout for each HTTP exchange")
    retry_delay: float = Field(default=10.0, ge=0.0, description="Delay before each retry")
    max_retries: int = Field(default=3, ge=0, description="Max retries; 0 disables retrying")
    user_agent: str | None = Field(default=None, description="Client-side application User-Agent")

    # Modification throttling
    modification_interval: float = Field(
        default=0.0, ge=0.0, description="Minimum spacing between mutating operations on one site"
    )


def get_settings(**overrides: Any) -> Settings:
    """Get settings with optional overrides.

    Example:
        >>> from wikiclient.core.config import get_settings
        >>> s = get_settings(modification_interval=0.5)
        >>> s.modification_interval
        0.5
    """
    return Settings(**overrides)
