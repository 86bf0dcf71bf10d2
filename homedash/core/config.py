"""Configuration settings for the homedash API.

This module centralizes all application configuration using Pydantic settings
management. Environment variables are loaded from .env files and the process
environment, with validation and type conversion handled automatically.

Configuration Categories:
    - Application: APP_NAME, HOST, PORT, LOG_FILE, UPSTREAM_TIMEOUT
    - Authentication: AUTH_USERNAME, AUTH_PASSWORD, AUTH_SECRET, HTTPS_ENABLED
    - Integrations: <SERVICE>_URL plus the API key, token or
      username/password each upstream expects
    - Feeds: RSS_FEED_URLS, YOUTUBE_CHANNEL_IDS, REDDIT_SUBREDDITS

Key Features:
    - Pydantic-based validation and type coercion
    - Support for .env file loading
    - List settings accept a JSON array or a comma-separated string
    - Immutable after initialization; the app receives one instance at startup

Usage:
    from homedash.core.config import Settings

    settings = Settings()
    print(settings.ADGUARD_URL)
"""

import json
from typing import Annotated, List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_AUTH_SECRET = "default-secret-change-me"


def split_list(v: Union[str, List[str], None]) -> List[str]:
    """Parses a list setting from a JSON array or comma-separated string.

    Args:
        v: Raw setting value.

    Returns:
        A list of non-empty, stripped entries.
    """
    if v is None:
        return []
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return []
        if v.startswith("[") and v.endswith("]"):
            try:
                return [str(i).strip() for i in json.loads(v) if str(i).strip()]
            except json.JSONDecodeError:
                pass
        # Fallback to comma-separated
        return [i.strip() for i in v.split(",") if i.strip()]
    return [str(i).strip() for i in v if str(i).strip()]


class Settings(BaseSettings):
    """Application settings and environment configuration."""

    APP_NAME: str = "homedash"
    HOST: str = "0.0.0.0"
    PORT: int = 4321
    LOG_FILE: str = ""
    UPSTREAM_TIMEOUT: float = 10.0
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost", "http://127.0.0.1"]

    # Auth
    AUTH_USERNAME: str = "admin"
    AUTH_PASSWORD: Optional[str] = None
    AUTH_SECRET: str = DEFAULT_AUTH_SECRET
    HTTPS_ENABLED: bool = False

    # DNS filter
    ADGUARD_URL: str = "http://localhost:3000"
    ADGUARD_USERNAME: Optional[str] = None
    ADGUARD_PASSWORD: Optional[str] = None

    # Media
    IMMICH_URL: str = "http://localhost:2283"
    IMMICH_API_KEY: Optional[str] = None
    JELLYFIN_URL: str = "http://localhost:8096"
    JELLYFIN_API_KEY: Optional[str] = None
    JELLYSEERR_URL: str = "http://localhost:5055"
    JELLYSEERR_API_KEY: Optional[str] = None
    RADARR_URL: str = "http://localhost:7878"
    RADARR_API_KEY: Optional[str] = None
    SONARR_URL: str = "http://localhost:8989"
    SONARR_API_KEY: Optional[str] = None
    QBITTORRENT_URL: str = "http://localhost:8080"
    QBITTORRENT_USERNAME: Optional[str] = None
    QBITTORRENT_PASSWORD: Optional[str] = None

    # Infrastructure
    PORTAINER_URL: str = "http://localhost:9000"
    PORTAINER_API_KEY: Optional[str] = None
    PROXMOX_URL: str = "https://localhost:8006"
    PROXMOX_TOKEN_ID: Optional[str] = None
    PROXMOX_TOKEN_SECRET: Optional[str] = None
    TRUENAS_URL: str = "http://localhost:80"
    TRUENAS_API_KEY: Optional[str] = None
    HOMEASSISTANT_URL: str = "http://localhost:8123"
    HOMEASSISTANT_TOKEN: Optional[str] = None

    # Feeds
    RSS_FEED_URLS: Annotated[List[str], NoDecode] = []
    YOUTUBE_CHANNEL_IDS: Annotated[List[str], NoDecode] = []
    REDDIT_SUBREDDITS: Annotated[List[str], NoDecode] = []

    @field_validator(
        "CORS_ORIGINS",
        "RSS_FEED_URLS",
        "YOUTUBE_CHANNEL_IDS",
        "REDDIT_SUBREDDITS",
        mode="before",
    )
    @classmethod
    def assemble_lists(cls, v: Union[str, List[str], None]) -> List[str]:
        """Parses list settings from various string formats or lists."""
        return split_list(v)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )


settings = Settings()
