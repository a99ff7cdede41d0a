"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    environment: str = Field(default="development", description="Environment: development, test, production")
    debug: bool = Field(default=False, description="Debug mode")

    # Database
    database_url: str = Field(..., description="Async database connection URL")

    # Redis
    redis_url: str = Field(default="", description="Redis connection URL (empty disables caching)")
    redis_password: str = Field(default="", description="Redis password")

    # Security
    jwt_secret: str = Field(..., min_length=32, description="Access token secret key (min 32 chars)")
    jwt_algorithm: str = Field(default="HS256", description="Access token algorithm")
    jwt_expiration_hours: int = Field(default=24, description="Access token lifetime in hours")

    # CORS
    allowed_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # Rate Limiting
    rate_limit_messages_per_minute: int = Field(default=30, description="Message sends per minute per client")

    # WebSocket
    ws_heartbeat_interval: int = Field(default=30, description="WebSocket heartbeat interval in seconds")

    # Cache TTL (in seconds)
    cache_unread_ttl: int = Field(default=60, description="Unread badge count cache TTL in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Web Push (VAPID)
    web_push_public_key: str = Field(default="", description="VAPID public key (base64url)")
    web_push_private_key: str = Field(default="", description="VAPID private key (base64url or PEM)")
    web_push_subject: str = Field(default="", description="VAPID subject, mailto: or https: URL")
    web_push_ttl: int = Field(default=180, description="Web Push message TTL in seconds")

    # Apple Push Notification service
    apns_key_id: str = Field(default="", description="APNs signing key ID")
    apns_team_id: str = Field(default="", description="Apple developer team ID")
    apns_bundle_id: str = Field(default="", description="iOS app bundle ID (apns-topic)")
    apns_private_key: str = Field(default="", description="APNs .p8 signing key in PEM form")
    apns_use_sandbox: bool = Field(default=False, description="Use the APNs sandbox authority")
    apns_token_ttl_seconds: int = Field(default=3000, description="How long a signed APNs JWT is reused")
    apns_request_timeout: float = Field(default=10.0, description="APNs request timeout in seconds")

    @field_validator("apns_private_key")
    @classmethod
    def unescape_private_key(cls, v: str) -> str:
        """Accept PEM keys passed through env files with literal \\n escapes."""
        return v.replace("\\n", "\n").strip()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def web_push_configured(self) -> bool:
        """Check if VAPID credentials are complete."""
        return bool(self.web_push_public_key and self.web_push_private_key and self.web_push_subject)

    @property
    def apns_configured(self) -> bool:
        """Check if APNs signing credentials are complete."""
        return bool(
            self.apns_key_id
            and self.apns_team_id
            and self.apns_bundle_id
            and self.apns_private_key
        )

    @property
    def push_configured(self) -> bool:
        """Check if at least one push provider can be used."""
        return self.web_push_configured or self.apns_configured

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


# Global settings instance
settings = Settings()
