"""
Configuration management for the rosterdesk API server.

Non-secret configuration (role tables, channel ids) loaded from a YAML file,
secrets (OAuth client secret, bot token) from environment variables.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "/etc/rosterdesk/config.yaml"


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("ROSTERDESK_CONFIG_FILE", DEFAULT_CONFIG_PATH))
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


class DiscordConfig(BaseModel):
    """Discord application, bot and guild settings."""

    client_id: str = Field(default="", description="OAuth2 client ID")
    client_secret: str = Field(default="", description="OAuth2 client secret (from env)")
    bot_token: str = Field(default="", description="Bot token used for REST calls (from env)")
    guild_id: str = Field(default="", description="Guild whose members form the roster")
    redirect_uri: str = Field(
        default="http://localhost:3000/auth/discord/callback",
        description="OAuth2 callback URL registered with Discord",
    )
    api_base_url: str = Field(default="https://discord.com/api/v10")
    authorize_url: str = Field(default="https://discord.com/api/oauth2/authorize")
    token_url: str = Field(default="https://discord.com/api/oauth2/token")
    scopes: list[str] = Field(default=["identify", "guilds.members.read"])
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every outbound Discord request",
    )


class RosterConfig(BaseModel):
    """Roster cache and filtering settings."""

    eligible_role_ids: list[str] = Field(
        default_factory=list,
        description="Members holding any of these roles appear on the roster",
    )
    freshness_seconds: float = Field(default=600.0, description="Snapshot freshness window")
    refresh_wait_timeout_seconds: float = Field(
        default=10.0,
        description="How long a caller waits on someone else's in-flight refresh",
    )
    warmup_delay_seconds: float = Field(
        default=5.0,
        description="Delay before the startup cache warm-up refresh",
    )
    rank_marker: str = Field(
        default="⁝",
        description="Role names containing this marker are displayed as the member's rank",
    )


class ActionsConfig(BaseModel):
    """Role tables for the disciplinary/commendation actions.

    Keys are action type wire values (``plus``, ``minus``, ``nagana``, ...).
    """

    ladders: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Ordered role ids per ladder action, lowest tier first",
    )
    markers: dict[str, str] = Field(
        default_factory=dict,
        description="Single marker role id per marker action",
    )
    always_apply_markers: list[str] = Field(
        default=["zawieszenie"],
        description="Marker actions that re-add the role even when already held",
    )
    labels: dict[str, str] = Field(
        default_factory=dict,
        description="Display label overrides per action type",
    )


class NotificationsConfig(BaseModel):
    """Audit channel routing and embed presentation."""

    channels: dict[str, str] = Field(
        default_factory=dict,
        description="Destination key (action type, 'report', 'holiday') -> channel id",
    )
    footer_text: str = Field(default="MIA EMS")
    display_timezone: str = Field(default="Europe/Warsaw")


class AuthConfig(BaseModel):
    """Dashboard login/session configuration."""

    session_ttl_hours: int = Field(default=24, description="Session TTL in hours")
    session_cookie_name: str = Field(default="rosterdesk_session")
    session_cookie_secure: bool = Field(
        default=False,
        description="Mark the session cookie Secure (enable behind HTTPS)",
    )
    high_command_role_id: str = Field(default="", description="Role flagged as isZarzad")
    internal_affairs_role_id: str = Field(default="", description="Role flagged as isMIA")
    require_staff_for_actions: bool = Field(
        default=False,
        description="Reject batch actions from users holding neither staff role",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ROSTERDESK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="rosterdesk")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    # Redis - URL from environment (may contain secrets)
    redis_url: RedisDsn = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (sessions and OAuth state)",
    )

    # Built dashboard frontend, served at / when present
    static_dir: Path = Field(default=Path("public"))

    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    roster: RosterConfig = Field(default_factory=RosterConfig)
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
