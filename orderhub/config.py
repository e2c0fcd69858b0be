"""
orderhub configuration.

Credentials are injected through the environment (or a .env file); nothing
secret lives in source.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings


def find_env_file() -> str:
    """Find .env file - check local dir, then project root."""
    local_env = Path(".env")
    root_env = Path("../.env")

    if local_env.exists():
        return str(local_env)
    elif root_env.exists():
        return str(root_env)
    return ".env"  # default


class Settings(BaseSettings):
    """Service settings from environment variables."""

    # Upstream order APIs (Firebase store, WooCommerce proxy, tracking)
    api_base_url: str = "http://localhost:3000/api"
    api_key: str = ""
    basic_auth_email: str = ""
    basic_auth_password: str = ""

    # HTTP behaviour
    request_timeout_seconds: float = 15.0
    adapter_timeout_seconds: float = 10.0  # per adapter on the dashboard join
    retry_attempts: int = 3  # read paths only
    retry_backoff_seconds: float = 0.5

    # Dashboard
    dashboard_woo_limit: int = 5
    activity_limit: int = 10

    # Carrier public tracking page
    tracking_url_template: str = "https://www.delhivery.com/track-v2/package/{tracking_id}"

    # Server
    host: str = "0.0.0.0"
    port: int = 8010
    debug: bool = False

    # Logging
    log_level: str = "info"
    log_path: str = ""  # e.g. /app/logs/orderhub.log

    version: str = "1.0.0"

    class Config:
        env_prefix = "ORDERHUB_"
        env_file = find_env_file()
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def has_basic_auth(self) -> bool:
        """Check if HTTP Basic credentials are configured"""
        return bool(self.basic_auth_email and self.basic_auth_password)

    def validate_required_config(self) -> list:
        """Validate that required configuration is present"""
        errors = []

        if not self.api_key:
            errors.append("ORDERHUB_API_KEY is required")

        if not self.has_basic_auth:
            errors.append("ORDERHUB_BASIC_AUTH_EMAIL and ORDERHUB_BASIC_AUTH_PASSWORD are required")

        return errors

    def get_config_summary(self) -> dict:
        """Get a summary of configuration (without sensitive data)"""
        return {
            "api_base_url": self.api_base_url,
            "api_key_configured": bool(self.api_key),
            "basic_auth_configured": self.has_basic_auth,
            "request_timeout_seconds": self.request_timeout_seconds,
            "adapter_timeout_seconds": self.adapter_timeout_seconds,
            "retry_attempts": self.retry_attempts,
            "dashboard_woo_limit": self.dashboard_woo_limit,
            "debug": self.debug,
            "host": self.host,
            "port": self.port,
            "log_level": self.log_level,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
