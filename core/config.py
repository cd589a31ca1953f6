"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Bancarios happen here. No module should
call os.getenv() or os.environ.get() directly. Entry points call
get_settings() once at process start and hand the resulting Settings value
to every component that needs it (Database, PasswordHasher, the API lifespan).
Components never reach back for a global.

Environment variable name mapping: field names are uppercased automatically.
E.g. `postgres_host` reads from POSTGRES_HOST, `environment` from ENVIRONMENT.

Transport security policy for PostgreSQL (see ssl_policy):
  1. POSTGRES_CA set     -> verify the server against that PEM trust anchor.
  2. ENVIRONMENT=production -> TLS on with the system trust store.
  3. anything else       -> TLS off (local docker database).

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or db/.
"""

import logging
import ssl
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

logger = logging.getLogger("bancarios.config")

_ENVIRONMENTS = ("development", "test", "production")

_DEFAULT_MIGRATIONS_DIR = str(Path(__file__).resolve().parent.parent / "db" / "migrations")

# bcrypt cost per environment. Each extra round doubles hashing time:
# 14 is roughly one second per hash, 4 is bcrypt's floor and keeps tests fast.
_PRODUCTION_BCRYPT_ROUNDS = 14
_DEVELOPMENT_BCRYPT_ROUNDS = 4


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: str = "development"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "local_user"
    postgres_password: str = ""
    postgres_db: str = "local_db"
    # PEM-encoded CA certificate (managed databases ship one). Empty = unset.
    postgres_ca: str = ""

    # Full SQLAlchemy URL. Overrides the POSTGRES_* fields when set; the test
    # suite points this at a throwaway SQLite file.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    migrations_dir: str = _DEFAULT_MIGRATIONS_DIR
    migrations_table: str = "pgmigrations"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in _ENVIRONMENTS:
            raise ValueError(f"ENVIRONMENT must be one of {', '.join(_ENVIRONMENTS)}; got {value!r}.")
        return normalized

    @model_validator(mode="after")
    def validate_production_credentials(self) -> "Settings":
        """Refuse to start in production without a database password.

        Development and test databases run in local containers where an empty
        password is normal. In production an empty password almost always
        means the environment was not loaded, which is better caught here than
        as a connection error on the first request.
        """
        if self.is_production and not self.database_url and not self.postgres_password:
            raise ValueError(
                "POSTGRES_PASSWORD is required in production mode. "
                "Set it in your environment or .env file, or set DATABASE_URL."
            )
        if self.postgres_ca and not self.is_production:
            logger.info("POSTGRES_CA is set; TLS will be used outside production as well.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def bcrypt_rounds(self) -> int:
        return _PRODUCTION_BCRYPT_ROUNDS if self.is_production else _DEVELOPMENT_BCRYPT_ROUNDS

    @property
    def sqlalchemy_url(self) -> URL:
        """Return the async SQLAlchemy URL for the configured database."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            "postgresql+asyncpg",
            username=self.postgres_user,
            password=self.postgres_password or None,
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db,
        )

    @property
    def ssl_policy(self) -> ssl.SSLContext | bool:
        """Return the value passed as asyncpg's `ssl` connect argument.

        An SSLContext when a CA certificate is configured, otherwise a plain
        on/off flag keyed to the deployment mode.
        """
        if self.postgres_ca:
            return ssl.create_default_context(cadata=self.postgres_ca)
        return self.is_production


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings value.

    Call this from entry points only (api/main.py lifespan, main.py). Library
    code receives Settings as a constructor argument.

    In tests: construct Settings(...) directly with explicit values, or call
    get_settings.cache_clear() if the environment must be re-read.
    """
    return Settings()
