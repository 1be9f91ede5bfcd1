"""Runtime configuration loaded from environment variables and ``.env``."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

# Default quantile: top 2.5% of customers
DEFAULT_QUANTILE = 0.025

# Purchases are EventTypeID 6 and emails are ChannelTypeID 1 in the source schema
PURCHASE_EVENT_TYPE_ID = 6
EMAIL_CHANNEL_TYPE_ID = 1

# Shown instead of an explicit database_url, which may embed credentials
URL_SAFE_PLACEHOLDER = "<database_url>"


class ConfigurationError(ValueError):
    """Raised when settings are missing or invalid."""


class Settings(BaseSettings):
    """Application settings.

    Every field maps to an upper-case environment variable (``DB_HOST``,
    ``QUANTILE``, ``SKIP_DB``...). Values in a ``.env`` file in the working
    directory are used when the variable is not set.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = ""
    db_password: str = ""
    db_name: str = "quanticfy_test"
    database_url: Optional[str] = None

    quantile: float = Field(default=DEFAULT_QUANTILE)
    skip_db: bool = False
    since_date: date = date(2020, 4, 1)
    purchase_event_type_id: int = PURCHASE_EVENT_TYPE_ID
    email_channel_type_id: int = EMAIL_CHANNEL_TYPE_ID

    export_table_prefix: str = "test_export_"
    export_batch_size: int = Field(default=1000, gt=0)
    log_level: str = "INFO"

    @field_validator("quantile")
    @classmethod
    def _check_quantile(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ValueError(f"quantile must be in (0, 1]: {value}")
        return value

    @field_validator("export_table_prefix")
    @classmethod
    def _check_table_prefix(cls, value: str) -> str:
        # Interpolated into DDL, so restrict to identifier characters
        if not value or not value.replace("_", "").isalnum():
            raise ValueError(
                f"export_table_prefix must contain only letters, digits and '_': {value!r}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def _require_credentials(self) -> "Settings":
        if self.skip_db or self.database_url:
            return self
        if not self.db_user:
            raise ValueError(
                "DB_USER environment variable is required (check your .env file)"
            )
        if not self.db_password:
            raise ValueError(
                "DB_PASSWORD environment variable is required (check your .env file)"
            )
        return self

    def sqlalchemy_url(self) -> URL | str:
        """Connection URL for SQLAlchemy.

        ``database_url`` wins when set; otherwise a MySQL URL using the
        PyMySQL driver is assembled from the individual fields.
        """
        if self.database_url:
            return self.database_url
        return URL.create(
            "mysql+pymysql",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"charset": "utf8mb4"},
        )

    def describe(self) -> str:
        """Short description without credentials, for logging."""
        if self.database_url:
            target = URL_SAFE_PLACEHOLDER
        else:
            target = f"{self.db_user}@{self.db_host}:{self.db_port}/{self.db_name}"
        return f"DB: {target}, Quantile: {self.quantile * 100:.1f}%"


def load_settings(**overrides: object) -> Settings:
    """Build :class:`Settings`, converting validation failures to ``ConfigurationError``."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
