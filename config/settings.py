"""Database settings.

Resolution order (later wins):
    built-in defaults -> ./Config/pgsqlConfig.json -> environment variables

Environment variables use exactly the same names as the JSON keys (pgAddress,
pgPort, pgUsername, pgPassword, pgDbName, pgConnectionString), case-sensitive;
libpq's PGPORT/PGPASSWORD and friends are not read. A non-blank
pgConnectionString replaces the discrete host/port/user/password/db fields.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from src.gs_common.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("./Config/pgsqlConfig.json")

# Fields persisted to the JSON config file
_FILE_FIELDS = (
    "pg_address",
    "pg_port",
    "pg_username",
    "pg_password",
    "pg_db_name",
    "pg_connection_string",
)


class DatabaseSettings(BaseSettings):
    # Only the exact alias names are read from the environment
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_ignore_empty=True,
        extra="ignore",
    )

    pg_address: str = Field("127.0.0.1", alias="pgAddress")
    pg_port: int = Field(5432, alias="pgPort")
    pg_username: str = Field("postgres", alias="pgUsername")
    pg_password: str = Field("localdb", alias="pgPassword")
    pg_db_name: str = Field("mmorpg_kit", alias="pgDbName")
    pg_connection_string: str = Field("", alias="pgConnectionString")

    # Engine knobs (env only)
    pg_echo: bool = Field(False, alias="pgEcho")
    pg_pool_size: int = Field(20, alias="pgPoolSize")
    pg_max_overflow: int = Field(10, alias="pgMaxOverflow")
    # asyncpg keeps this many prepared statements per connection
    pg_statement_cache_size: int = Field(500, alias="pgStatementCacheSize")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # init kwargs carry the JSON file values, so the environment goes first.
        # No .env file and no secrets directory.
        return env_settings, init_settings

    @model_validator(mode="after")
    def _check_connection_string(self) -> "DatabaseSettings":
        if self.pg_connection_string.strip():
            try:
                make_url(self.pg_connection_string.strip())
            except ArgumentError as exc:
                raise ValueError(f"pgConnectionString is not a database URL: {exc}") from exc
        return self

    @property
    def database_url(self) -> URL:
        if self.pg_connection_string.strip():
            return make_url(self.pg_connection_string.strip())
        return URL.create(
            "postgresql+asyncpg",
            username=self.pg_username,
            password=self.pg_password or None,
            host=self.pg_address,
            port=self.pg_port,
            database=self.pg_db_name,
        )

    @property
    def masked_database_url(self) -> str:
        return self.database_url.render_as_string(hide_password=True)


def default_file_values() -> dict[str, Any]:
    """Built-in defaults for the file-backed fields, keyed by their JSON names."""
    fields = DatabaseSettings.model_fields
    return {fields[name].alias: fields[name].default for name in _FILE_FIELDS}


def load_settings(config_path: str | Path = DEFAULT_CONFIG_PATH) -> DatabaseSettings:
    """Read the JSON config file once and overlay environment variables.

    When the file does not exist it is created with the built-in defaults.
    Raises ConfigurationError on an unreadable/malformed file or invalid values.
    """
    path = Path(config_path)
    logger.info("Reading config file from %s", path)

    file_values: dict[str, Any] = {}
    found = path.is_file()
    if found:
        logger.info("Found config file")
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"cannot read {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        # null means "not set" in the config file
        file_values = {key: value for key, value in raw.items() if value is not None}

    try:
        settings = DatabaseSettings(**file_values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    if not found:
        logger.info("Config file not found, creating a new one at %s", path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(default_file_values(), indent=4), encoding="utf-8")

    return settings
