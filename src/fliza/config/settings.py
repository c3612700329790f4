"""Settings and configuration management."""

import logging
import warnings
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_DEFAULT_ELIZA_URL = "https://fliza-agent-production.up.railway.app"
_DEFAULT_AGENT_ID = "16f68732-3783-05ea-b38a-ad1e1c7ea90c"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Agent backend
    eliza_url: str = Field(
        _DEFAULT_ELIZA_URL, description="Base URL of the remote agent service"
    )
    eliza_agent_id: str = Field(
        _DEFAULT_AGENT_ID, description="Agent id used when creating sessions"
    )
    agent_timeout_seconds: float = Field(
        30.0, description="Timeout for each call to the agent service"
    )
    retry_on_expired: bool = Field(
        False,
        description="Re-create the session and retry once when a send hits an expired session",
    )

    # Session cache
    session_store: str = Field(
        "memory", description="Session cache backend: 'memory' or 'redis'"
    )
    redis_url: Optional[str] = Field(
        None, description="Redis URL for the shared session cache"
    )
    session_safety_margin_seconds: float = Field(
        300.0,
        description="Cached sessions expire this many seconds before the backend expiry",
    )
    default_session_ttl_seconds: float = Field(
        3600.0, description="Session lifetime assumed when the backend omits expiresAt"
    )

    # Persistence
    supabase_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
        description="Hosted message store URL",
    )
    supabase_anon_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"
        ),
        description="Public (anon) key for the message store",
    )
    supabase_service_role_key: Optional[str] = Field(
        None, description="Service-role key for privileged reply writes"
    )
    messages_table: str = Field("messages", description="Message table name")
    guest_prefix: str = Field("guest-", description="Prefix marking guest user ids")
    dedup_window_seconds: float = Field(
        30.0,
        description="Window for matching replies that have no durable id yet",
    )

    # Vision / design
    google_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
        description="Gemini API key",
    )
    vision_model: str = Field("gemini-2.0-flash", description="Scene analysis model")
    design_model: str = Field(
        "gemini-3-pro-image-preview", description="Design generation model"
    )

    # Application Settings
    app_name: str = Field("Fliza", description="Application name")
    debug: bool = Field(False, description="Debug mode")
    production: bool = Field(
        False,
        description="Production mode - enables strict configuration validation",
    )
    host: str = Field("127.0.0.1", description="Bind address for `fliza serve`")
    port: int = Field(8000, description="Port for `fliza serve`")
    web_origin: str = Field(
        "http://localhost:3000", description="Front-end origin allowed by CORS"
    )
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", description="Log format: 'text' or 'json'")
    sanitize_logs: bool = Field(True, description="Sanitize sensitive data from logs")

    @property
    def has_persistence(self) -> bool:
        """Check if the hosted message store is configured."""
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def has_vision(self) -> bool:
        """Check if Gemini credentials are available."""
        return bool(self.google_api_key)

    @property
    def uses_secure_agent_url(self) -> bool:
        return self.eliza_url.startswith("https://")

    def model_post_init(self, __context) -> None:
        """Validate production config."""
        self._validate_production_config()

    def _validate_production_config(self) -> None:
        """Validate configuration for production safety."""
        issues = []

        if not self.uses_secure_agent_url:
            issues.append(
                f"ELIZA_URL ({self.eliza_url}) is not https. "
                "Internal addresses are not reachable from hosted deployments; "
                "use the public agent URL."
            )

        if not self.has_persistence:
            issues.append(
                "SUPABASE_URL / SUPABASE_ANON_KEY are not set. "
                "Conversation history will only live in process memory."
            )

        if self.session_store == "redis" and not self.redis_url:
            issues.append("SESSION_STORE=redis requires REDIS_URL.")

        if self.debug and self.production:
            issues.append("DEBUG mode is enabled in production. Set DEBUG=false.")

        if not issues:
            return

        if self.production:
            raise ValueError(
                "Invalid configuration (production mode enabled):\n"
                + "\n".join(f"  - {issue}" for issue in issues)
            )
        for issue in issues:
            warnings.warn(f"Config: {issue}", stacklevel=3)
            logger.warning("CONFIG WARNING: %s", issue)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
