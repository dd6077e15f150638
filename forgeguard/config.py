"""
ForgeGuard configuration.

Settings are loaded with pydantic-settings from environment variables
(prefix ``FORGEGUARD_``) and an optional ``.env`` file.

Security considerations:
- The TOTP encryption key must be supplied via the environment in production
- The development default key is refused when ENVIRONMENT=production
- Protocol constants (TOTP digits, cipher layout) live in their own modules
  and are not configurable
"""

import logging
from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_ENCRYPTION_KEY = "default-key-change-in-production"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """
    Typed settings for the authentication core.

    Priority for loading:
    1. Environment variables (highest priority)
    2. .env file
    3. Default values (development only)
    """

    environment: str = "development"

    # Master key for encrypting TOTP secrets at rest
    totp_encryption_key: SecretStr = SecretStr(DEV_ENCRYPTION_KEY)
    totp_issuer: str = "The Forge CRM"
    kdf_iterations: int = 100_000

    database_url: str = "sqlite:///./forge.db"
    database_echo: bool = False

    # Argon2id cost for password and backup-code hashes
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 4

    # Worker threads for slow hashing
    hash_workers: int = 4

    rate_limit_sweep_interval: float = 300.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FORGEGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _reject_dev_key_in_production(self) -> "Settings":
        if self.is_production and self.totp_encryption_key.get_secret_value() == DEV_ENCRYPTION_KEY:
            raise ValueError("FORGEGUARD_TOTP_ENCRYPTION_KEY must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance, loaded once per process."""
    return Settings()


def configure_logging(level: str = None) -> None:
    """
    Configure standard library logging for the host process.

    Args:
        level: Log level name (defaults to the configured log_level)
    """
    if level is None:
        level = get_settings().log_level
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
