"""Tests for config.settings: defaults -> JSON file -> environment."""

import json

import pytest

from config.settings import DatabaseSettings, default_file_values, load_settings
from src.gs_common.errors import ConfigurationError

_ENV_NAMES = (
    "pgAddress",
    "pgPort",
    "pgUsername",
    "pgPassword",
    "pgDbName",
    "pgConnectionString",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write_config(path, values: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(values), encoding="utf-8")


class TestDefaults:
    def test_missing_file_uses_defaults_and_writes_them(self, tmp_path) -> None:
        path = tmp_path / "Config" / "pgsqlConfig.json"

        settings = load_settings(path)

        assert settings.pg_address == "127.0.0.1"
        assert settings.pg_port == 5432
        assert settings.pg_db_name == "mmorpg_kit"
        assert path.exists()
        written = json.loads(path.read_text(encoding="utf-8"))
        assert written == default_file_values()
        assert written["pgPort"] == 5432

    def test_written_file_does_not_capture_environment(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("pgPassword", "from-env")
        path = tmp_path / "pgsqlConfig.json"

        settings = load_settings(path)

        assert settings.pg_password == "from-env"
        assert json.loads(path.read_text(encoding="utf-8"))["pgPassword"] == "localdb"


class TestPrecedence:
    def test_file_overrides_defaults(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgPort": 5555, "pgAddress": "db.internal"})

        settings = load_settings(path)

        assert settings.pg_port == 5555
        assert settings.pg_address == "db.internal"
        assert settings.pg_username == "postgres"

    def test_environment_overrides_file(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgPort": 5555})
        monkeypatch.setenv("pgPort", "6666")

        settings = load_settings(path)

        assert settings.pg_port == 6666

    def test_empty_environment_value_is_ignored(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgDbName": "from_file"})
        monkeypatch.setenv("pgDbName", "")

        assert load_settings(path).pg_db_name == "from_file"

    def test_libpq_variables_are_not_read(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        monkeypatch.setenv("PGPORT", "7777")
        monkeypatch.setenv("PGPASSWORD", "libpq-secret")

        settings = load_settings(path)

        assert settings.pg_port == 5432
        assert settings.pg_password == "localdb"

    def test_env_names_are_case_sensitive(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgDbName": "from_file"})
        monkeypatch.setenv("pgdbname", "lowercase")
        monkeypatch.setenv("PGDBNAME", "uppercase")

        assert load_settings(path).pg_db_name == "from_file"

    def test_field_names_are_not_env_names(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        monkeypatch.setenv("PG_PORT", "8888")
        monkeypatch.setenv("pg_port", "8889")

        assert load_settings(path).pg_port == 5432

    def test_dotenv_file_is_not_a_source(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgPort": 5555})
        # clean_env already chdir'd into tmp_path
        (tmp_path / ".env").write_text("pgPort=9999\npgAddress=dotenv-host\n", encoding="utf-8")

        settings = load_settings(path)

        assert settings.pg_port == 5555
        assert settings.pg_address == "127.0.0.1"

    def test_null_in_file_means_not_set(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgAddress": None, "pgPort": None})

        settings = load_settings(path)

        assert settings.pg_address == "127.0.0.1"
        assert settings.pg_port == 5432


class TestDatabaseUrl:
    def test_built_from_discrete_fields(self) -> None:
        settings = DatabaseSettings(
            pgAddress="10.0.0.5", pgPort=5433, pgUsername="game", pgPassword="s3cret", pgDbName="mmo"
        )
        url = settings.database_url
        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "10.0.0.5"
        assert url.port == 5433
        assert url.username == "game"
        assert url.password == "s3cret"
        assert url.database == "mmo"
        assert "s3cret" not in settings.masked_database_url

    def test_empty_password_is_omitted(self) -> None:
        settings = DatabaseSettings(pgPassword="")
        assert settings.database_url.password is None

    def test_connection_string_wins(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgAddress": "ignored-host"})
        monkeypatch.setenv("pgConnectionString", "postgresql+asyncpg://u:p@override:6000/other")

        url = load_settings(path).database_url

        assert url.host == "override"
        assert url.port == 6000
        assert url.database == "other"

    def test_blank_connection_string_is_ignored(self) -> None:
        settings = DatabaseSettings(pgConnectionString="   ", pgAddress="h")
        assert settings.database_url.host == "h"


class TestErrors:
    def test_malformed_json(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_non_object_json(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_invalid_port(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgPort": "not-a-port"})
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path)
        assert exc_info.value.code == 1001

    def test_unparseable_connection_string(self, tmp_path) -> None:
        path = tmp_path / "pgsqlConfig.json"
        _write_config(path, {"pgConnectionString": "Host=x;Port=1;"})
        with pytest.raises(ConfigurationError):
            load_settings(path)
