"""Settings loader for the runner and planner. Merges an optional TOML file with environment variables."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from sqlreplay.core.errors import ConfigurationError
from sqlreplay.core.utils import is_gs_path
from sqlreplay.db.connection import DEFAULT_TIMEOUT_SECONDS, DBCredentials, DBOptions

DEFAULT_CONFIG_NAME = "sqlreplay.toml"
DEFAULT_RELATIONS_PATH = Path("..") / ".db-relation.yml"
DEFAULT_PLANNER_SCRIPTS_DIR = Path("..") / "sql"

# env var -> config key; required entries have no default
RUNNER_ENV_MAP = {
    "INPUT_DB_USER": "db_user",
    "INPUT_DB_PASSWORD": "db_password",
    "INPUT_DB_HOST": "db_host",
    "INPUT_DB_PORT": "db_port",
    "INPUT_DB": "db",
    "INPUT_SCRIPTS_DIR": "scripts_dir",
}
REQUIRED_RUNNER_ENV = tuple(RUNNER_ENV_MAP)


@dataclass(frozen=True)
class RunnerSettings:
    """Effective settings for one runner invocation."""

    credentials: DBCredentials
    options: DBOptions
    scripts_dir: str
    debug: bool = False
    relations_file: Optional[str] = None


@dataclass(frozen=True)
class PlannerSettings:
    """Effective settings for one planner invocation."""

    relations_file: str
    scripts_dir: str


def load_config(path: Path | None) -> Dict[str, Any]:
    """Load a TOML config file and return the sqlreplay section or top-level dict."""
    if not path or not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"unable to read config file {path}: {exc}") from exc
    if isinstance(data, dict) and "sqlreplay" in data and isinstance(data["sqlreplay"], dict):
        return data["sqlreplay"]
    return data or {}


def resolve_config_path(env: Mapping[str, str]) -> Path:
    explicit = (env.get("SQLREPLAY_CONFIG") or "").strip()
    if explicit:
        return Path(explicit)
    return Path.cwd() / DEFAULT_CONFIG_NAME


def _env_or_config(env: Mapping[str, str], config: Mapping[str, Any], env_key: str, config_key: str, default: Any) -> Any:
    if env_key in env and env[env_key] != "":
        return env[env_key]
    if config_key in config:
        return config[config_key]
    return default


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except Exception:
        return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except Exception:
        return default


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "t", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "f", "false", "no", "n", "off", ""}:
        return False
    return default


def build_runner_settings(config: Mapping[str, Any], env: Mapping[str, str]) -> RunnerSettings:
    """Build runner settings with env overrides applied.

    Args:
        config (Mapping[str, Any]): Values from the TOML config file.
        env (Mapping[str, str]): Environment variables.

    Returns:
        RunnerSettings: Validated settings.

    Raises:
        ConfigurationError: When required values are missing or malformed.
    """
    values = {
        env_key: _env_or_config(env, config, env_key, config_key, None)
        for env_key, config_key in RUNNER_ENV_MAP.items()
    }
    missing = [key for key in REQUIRED_RUNNER_ENV if values[key] is None or str(values[key]).strip() == ""]
    if missing:
        raise ConfigurationError("missing required environment variables: " + ", ".join(missing))

    raw_port = values["INPUT_DB_PORT"]
    port = _coerce_int(raw_port, -1)
    if port < 0 or isinstance(raw_port, bool):
        raise ConfigurationError(f"INPUT_DB_PORT must be an integer, got {raw_port!r}")

    scripts_dir = str(values["INPUT_SCRIPTS_DIR"])
    if is_gs_path(scripts_dir):
        raise ConfigurationError(f"INPUT_SCRIPTS_DIR must be a local path, got {scripts_dir}")

    timeout = _coerce_float(
        _env_or_config(env, config, "INPUT_DB_TIMEOUT", "db_timeout", DEFAULT_TIMEOUT_SECONDS),
        DEFAULT_TIMEOUT_SECONDS,
    )
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT_SECONDS

    relations_file = _env_or_config(env, config, "INPUT_RELATIONS_FILE", "relations_file", None)
    credentials = DBCredentials(
        user=str(values["INPUT_DB_USER"]),
        password=str(values["INPUT_DB_PASSWORD"]),
        host=str(values["INPUT_DB_HOST"]),
        port=port,
        database=str(values["INPUT_DB"]),
        cloud_sql_instance=_env_or_config(env, config, "INPUT_CLOUD_SQL_INSTANCE", "cloud_sql_instance", None),
    )
    return RunnerSettings(
        credentials=credentials,
        options=DBOptions(timeout=timeout),
        scripts_dir=scripts_dir,
        debug=_coerce_bool(_env_or_config(env, config, "DEBUG", "debug", False), False),
        relations_file=str(relations_file) if relations_file else None,
    )


def load_runner_settings(env: Mapping[str, str] | None = None) -> RunnerSettings:
    """Resolve runner settings from the process environment and optional config file."""
    env = os.environ if env is None else env
    return build_runner_settings(load_config(resolve_config_path(env)), env)


def load_planner_settings(
    *,
    relations_file: str | None = None,
    scripts_dir: str | None = None,
    env: Mapping[str, str] | None = None,
) -> PlannerSettings:
    """Resolve planner paths: explicit arguments, then config file, then defaults."""
    env = os.environ if env is None else env
    config = load_config(resolve_config_path(env))
    relations = relations_file or config.get("relations_file") or str(DEFAULT_RELATIONS_PATH)
    scripts = scripts_dir or config.get("planner_scripts_dir") or str(DEFAULT_PLANNER_SCRIPTS_DIR)
    if is_gs_path(str(scripts)):
        raise ConfigurationError(f"scripts directory must be a local path, got {scripts}")
    return PlannerSettings(relations_file=str(relations), scripts_dir=str(scripts))
