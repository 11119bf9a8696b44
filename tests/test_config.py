"""Tests for runner/planner settings resolution from env and the optional TOML config."""

import pytest

from sqlreplay.core import config
from sqlreplay.core.errors import ConfigurationError

BASE_ENV = {
    "INPUT_DB_USER": "ci",
    "INPUT_DB_PASSWORD": "s3cret",
    "INPUT_DB_HOST": "db.internal",
    "INPUT_DB_PORT": "5432",
    "INPUT_DB": "app",
    "INPUT_SCRIPTS_DIR": "/work/sql",
}


def test_runner_settings_from_env():
    settings = config.build_runner_settings({}, dict(BASE_ENV, DEBUG="true"))
    assert settings.credentials.user == "ci"
    assert settings.credentials.port == 5432
    assert settings.credentials.database == "app"
    assert settings.scripts_dir == "/work/sql"
    assert settings.debug is True
    assert settings.options.timeout == 30.0
    assert settings.relations_file is None


def test_missing_required_variables_are_listed():
    env = dict(BASE_ENV)
    del env["INPUT_DB_PASSWORD"]
    env["INPUT_SCRIPTS_DIR"] = ""
    with pytest.raises(ConfigurationError) as excinfo:
        config.build_runner_settings({}, env)
    assert "INPUT_DB_PASSWORD" in str(excinfo.value)
    assert "INPUT_SCRIPTS_DIR" in str(excinfo.value)


def test_port_must_be_integer():
    with pytest.raises(ConfigurationError):
        config.build_runner_settings({}, dict(BASE_ENV, INPUT_DB_PORT="five"))


def test_debug_defaults_off_and_ignores_unknown_values():
    assert config.build_runner_settings({}, BASE_ENV).debug is False
    assert config.build_runner_settings({}, dict(BASE_ENV, DEBUG="maybe")).debug is False
    assert config.build_runner_settings({}, dict(BASE_ENV, DEBUG="1")).debug is True


@pytest.mark.parametrize("value, expected", [("t", True), ("T", True), ("f", False), ("F", False)])
def test_debug_accepts_single_letter_booleans(value, expected):
    assert config.build_runner_settings({}, dict(BASE_ENV, DEBUG=value)).debug is expected


def test_gs_scripts_dir_is_rejected():
    with pytest.raises(ConfigurationError):
        config.build_runner_settings({}, dict(BASE_ENV, INPUT_SCRIPTS_DIR="gs://bucket/sql"))


def test_optional_settings():
    settings = config.build_runner_settings(
        {},
        dict(
            BASE_ENV,
            INPUT_DB_TIMEOUT="7.5",
            INPUT_RELATIONS_FILE="/work/.db-relation.yml",
            INPUT_CLOUD_SQL_INSTANCE="proj:reg:inst",
        ),
    )
    assert settings.options.timeout == 7.5
    assert settings.relations_file == "/work/.db-relation.yml"
    assert settings.credentials.cloud_sql_instance == "proj:reg:inst"


def test_config_file_supplies_defaults_env_wins(tmp_path, monkeypatch):
    path = tmp_path / "sqlreplay.toml"
    path.write_text(
        "[sqlreplay]\n"
        'db_user = "file-user"\n'
        'db_password = "file-pass"\n'
        'db_host = "/cloudsql/proj:reg:inst"\n'
        "db_port = 5433\n"
        'db = "file-db"\n'
        'scripts_dir = "/file/sql"\n'
        "db_timeout = 10\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SQLREPLAY_CONFIG", str(path))
    monkeypatch.setenv("INPUT_DB", "env-db")
    settings = config.load_runner_settings()
    assert settings.credentials.user == "file-user"
    assert settings.credentials.host == "/cloudsql/proj:reg:inst"
    assert settings.credentials.port == 5433
    assert settings.credentials.database == "env-db"
    assert settings.options.timeout == 10.0


def test_load_config_missing_and_top_level(tmp_path):
    assert config.load_config(tmp_path / "absent.toml") == {}
    path = tmp_path / "flat.toml"
    path.write_text('db_user = "flat"\n', encoding="utf-8")
    assert config.load_config(path) == {"db_user": "flat"}


def test_load_config_invalid_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("db_user = \n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        config.load_config(path)


def test_planner_settings_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = config.load_planner_settings()
    assert settings.relations_file == "../.db-relation.yml"
    assert settings.scripts_dir == "../sql"


def test_planner_settings_explicit(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = config.load_planner_settings(relations_file="rel.yml", scripts_dir="scripts")
    assert settings.relations_file == "rel.yml"
    assert settings.scripts_dir == "scripts"
