"""Relay configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
PACKAGE_DIR = Path(__file__).parent.parent
PROJECT_DIR = PACKAGE_DIR.parent

DEFAULT_COMMAND_COOLDOWN = 15
MIN_POLLING_INTERVAL = 5
MAX_POLLING_INTERVAL = 60
DEFAULT_POLLING_INTERVAL = 5

USER_SCOPES = [
    "user:bot",  # app-token channel.chat.message
    "channel:bot",  # app-token channel.chat.message
    "moderator:read:followers",  # channel.follow v2
    "channel:read:subscriptions",  # subscribe / gift / resub message
    "bits:read",  # cheer
    "user:read:chat",  # channel.chat.message
    "user:write:chat",  # command list replies
]


class RelaySettings(BaseSettings):
    """Alert relay settings"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")
    user_access_token: str = Field(default="", description="Operator-supplied user token")
    oauth_redirect_uri: str = Field(default="", description="OAuth callback URL override")

    # EventSub webhook
    webhook_secret: str = Field(..., description="Shared HMAC secret for EventSub callbacks")
    base_url: str = Field(..., description="Public base URL Twitch calls back")
    twitch_channels: str = Field(default="", description="Comma-separated channel logins")

    # Chat commands
    commands_dir: Path = Field(default=PROJECT_DIR / "media", description="Media command root")
    command_cooldown: int = Field(default=DEFAULT_COMMAND_COOLDOWN, description="Seconds")

    # YouTube
    youtube_api_key: str = Field(default="", description="YouTube Data API key")
    youtube_channel_id: str = Field(default="", description="Monitored YouTube channel")
    youtube_polling_interval: int = Field(default=DEFAULT_POLLING_INTERVAL, description="Seconds")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Bind port")
    websocket_path: str = Field(default="/ws", description="Overlay WebSocket route")
    test_port: int = Field(default=0, description="Local test-alert port, 0 disables")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("command_cooldown")
    @classmethod
    def validate_command_cooldown(cls, v: int) -> int:
        if v <= 0:
            return DEFAULT_COMMAND_COOLDOWN
        return v

    @field_validator("youtube_polling_interval")
    @classmethod
    def clamp_polling_interval(cls, v: int) -> int:
        """Out-of-range intervals fall back to the default"""
        if v < MIN_POLLING_INTERVAL or v > MAX_POLLING_INTERVAL:
            logger.warning(
                f"YOUTUBE_POLLING_INTERVAL={v} outside {MIN_POLLING_INTERVAL}-"
                f"{MAX_POLLING_INTERVAL}s, using {DEFAULT_POLLING_INTERVAL}s"
            )
            return DEFAULT_POLLING_INTERVAL
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def channel_logins(self) -> list[str]:
        return [c.strip().lower() for c in self.twitch_channels.split(",") if c.strip()]

    @property
    def primary_channel(self) -> str | None:
        logins = self.channel_logins
        return logins[0] if logins else None

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}/webhooks/twitch"

    @property
    def redirect_uri(self) -> str:
        return self.oauth_redirect_uri or f"{self.base_url}/auth/twitch/callback"

    @property
    def youtube_enabled(self) -> bool:
        return bool(self.youtube_api_key and self.youtube_channel_id)


@lru_cache
def get_settings() -> RelaySettings:
    """Get cached settings instance"""
    return RelaySettings()  # type: ignore[call-arg]


def validate_env_vars() -> RelaySettings:
    """Load settings, logging validation failures before re-raising."""
    try:
        settings = get_settings()
    except Exception as e:
        logging.getLogger("Relay").error(f"Configuration error: {e}")
        raise
    logger.info("All required environment variables validated successfully")
    return settings
