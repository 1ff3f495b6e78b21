"""Configuration system for locman.

This module provides hierarchical configuration management with the following
priority order (highest to lowest):
1. Runtime Parameters (CLI options, passed directly to ``load_config``)
2. Environment Variables (``OLLAMA_IP``/``OLLAMA_PORT`` and ``LOCMAN_*``)
3. Dotenv File (``.env`` in the working directory)
4. Project Config ([tool.locman] in pyproject.toml)
5. Defaults (hardcoded fallbacks)

Host and port have no defaults: a daemon address must come from somewhere.
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

from locman.errors import ConfigError

DEFAULT_ENV_FILE = ".env"

# Later entries win when several names map to the same key.
_ENV_MAPPING: tuple[tuple[str, str], ...] = (
    ("CURL_CONNECT_TIMEOUT", "connect_timeout"),
    ("CURL_TIMEOUT", "max_time"),
    ("RETRY_COUNT", "retry_count"),
    ("RETRY_DELAY", "retry_delay"),
    ("OLLAMA_IP", "host"),
    ("OLLAMA_PORT", "port"),
    ("LOCMAN_CONNECT_TIMEOUT", "connect_timeout"),
    ("LOCMAN_MAX_TIME", "max_time"),
    ("LOCMAN_RETRY_COUNT", "retry_count"),
    ("LOCMAN_RETRY_DELAY", "retry_delay"),
    ("LOCMAN_VERBOSE", "verbose"),
)

_FIELD_SOURCES = {
    "host": "OLLAMA_IP",
    "port": "OLLAMA_PORT",
    "connect_timeout": "LOCMAN_CONNECT_TIMEOUT",
    "max_time": "LOCMAN_MAX_TIME",
    "retry_count": "LOCMAN_RETRY_COUNT",
    "retry_delay": "LOCMAN_RETRY_DELAY",
    "verbose": "LOCMAN_VERBOSE",
}


class ManagerConfig(BaseModel):
    """Connection and request-policy settings for one locman session.

    Immutable for the lifetime of the process.
    """

    host: str = Field(
        min_length=1,
        description="Daemon IP address or hostname (no scheme)",
    )

    port: int = Field(
        ge=1,
        le=65535,
        description="Daemon TCP port",
    )

    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds allowed for establishing a connection",
    )

    max_time: float = Field(
        default=0.0,
        ge=0,
        description="Per-request time limit in seconds; 0 disables it so large pulls finish",
    )

    retry_count: int = Field(
        default=2,
        ge=0,
        description="Extra attempts after a transient failure",
    )

    retry_delay: float = Field(
        default=2.0,
        ge=0,
        description="Fixed delay in seconds between attempts",
    )

    verbose: bool = Field(
        default=False,
        description="Enable debug logging of requests and retries",
    )

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _map_env(source: Mapping[str, Optional[str]]) -> dict[str, Any]:
    """Translate environment-style names from *source* into config keys."""
    config: dict[str, Any] = {}
    for env_var, config_key in _ENV_MAPPING:
        value = source.get(env_var)
        if value is None or value == "":
            continue
        if config_key == "verbose":
            config[config_key] = _parse_bool(value)
        else:
            config[config_key] = value
    return config


def _load_from_env() -> dict[str, Any]:
    """Load configuration from the process environment."""
    return _map_env(os.environ)


def _load_from_env_file(env_file: Optional[Path]) -> dict[str, Any]:
    """Load configuration from a dotenv file without exporting it.

    Args:
        env_file: Path to the file; ``None`` or a missing file yields ``{}``.
    """
    if env_file is None or not env_file.is_file():
        return {}
    return _map_env(dotenv_values(env_file))


def _load_from_pyproject_toml() -> dict[str, Any]:
    """Load configuration from [tool.locman] section in pyproject.toml.

    Returns:
        Dictionary with config values, or empty dict if not found.
    """
    try:
        import tomllib  # Python 3.11+
    except ImportError:
        try:
            import tomli as tomllib  # noqa: F401
        except ImportError:
            return {}

    current_dir = Path.cwd()
    for path in [current_dir] + list(current_dir.parents):
        pyproject_path = path / "pyproject.toml"
        if pyproject_path.exists():
            try:
                with open(pyproject_path, "rb") as f:
                    data = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError):
                continue
            section = data.get("tool", {}).get("locman")
            if section:
                return dict(section)
            return {}

    return {}


def _describe_errors(exc: ValidationError) -> str:
    problems: list[str] = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "?"
        source = _FIELD_SOURCES.get(field, field)
        if error["type"] == "missing":
            problems.append(f"Set {source} in {DEFAULT_ENV_FILE} or the environment")
        else:
            problems.append(f"{source}: {error['msg']}")
    return "; ".join(problems)


def load_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    verbose: Optional[bool] = None,
    env_file: Optional[Path] = Path(DEFAULT_ENV_FILE),
    **kwargs: Any,
) -> ManagerConfig:
    """Load configuration with hierarchical priority.

    Args:
        host: Daemon address override.
        port: Daemon port override.
        verbose: Enable debug logging.
        env_file: Dotenv file to consult; ``None`` skips it.
        **kwargs: Additional ``ManagerConfig`` fields (timeouts, retries).

    Returns:
        ManagerConfig instance with merged configuration.

    Raises:
        ConfigError: Host or port is missing, or a value is invalid.
    """
    runtime_config: dict[str, Any] = {}
    if host is not None:
        runtime_config["host"] = host
    if port is not None:
        runtime_config["port"] = port
    if verbose is not None:
        runtime_config["verbose"] = verbose
    runtime_config.update({k: v for k, v in kwargs.items() if v is not None})

    merged_config: dict[str, Any] = {}
    merged_config.update(_load_from_pyproject_toml())
    merged_config.update(_load_from_env_file(env_file))
    merged_config.update(_load_from_env())
    merged_config.update(runtime_config)

    try:
        return ManagerConfig(**merged_config)
    except ValidationError as exc:
        raise ConfigError(_describe_errors(exc)) from exc
