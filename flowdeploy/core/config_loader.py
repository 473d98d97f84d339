"""Configuration management for the FlowDeploy client"""

import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

from flowdeploy.constants import (
    API_PATH_SUFFIX,
    CONFIG_FILENAME,
    DEFAULT_API_URL,
    DEFAULT_CONFIG_DIR,
    DEFAULT_REQUEST_TIMEOUT,
    ENV_PREFIX,
    LOGS_DIRNAME,
    STREAM_DISCONNECT_GRACE,
    STREAM_RECONNECTION_ATTEMPTS,
    STREAM_RECONNECTION_DELAY,
)
from flowdeploy.exceptions import ConfigurationError


def socket_url_for(api_url: str) -> str:
    """Real-time channel lives on the API host, without the /api prefix."""
    url = api_url.rstrip("/")
    if url.endswith(API_PATH_SUFFIX):
        url = url[: -len(API_PATH_SUFFIX)]
    return url


@dataclass
class ClientConfig:
    """Resolved client configuration"""

    api_url: str = DEFAULT_API_URL
    socket_url: Optional[str] = None
    config_dir: Path = Path(DEFAULT_CONFIG_DIR).expanduser()
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    reconnection_attempts: int = STREAM_RECONNECTION_ATTEMPTS
    reconnection_delay: float = STREAM_RECONNECTION_DELAY
    disconnect_grace: float = STREAM_DISCONNECT_GRACE

    def __post_init__(self):
        self.config_dir = Path(self.config_dir).expanduser()
        self.api_url = self.api_url.rstrip("/")
        if not self.socket_url:
            self.socket_url = socket_url_for(self.api_url)

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def logs_dir(self) -> Path:
        return self.config_dir / LOGS_DIRNAME

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["config_dir"] = str(self.config_dir)
        return data


# Keys settable through config.yml / FLOWDEPLOY_* variables, and their types
_FIELD_TYPES = {
    "api_url": str,
    "socket_url": str,
    "request_timeout": float,
    "reconnection_attempts": int,
    "reconnection_delay": float,
    "disconnect_grace": float,
}


class ConfigLoader:
    """
    Loads ClientConfig from defaults, config.yml, a .env file and the
    process environment (later sources win).
    """

    def __init__(self, config_dir: Optional[Path] = None, cwd: Optional[Path] = None):
        home = os.environ.get(f"{ENV_PREFIX}HOME")
        self.config_dir = Path(config_dir or home or DEFAULT_CONFIG_DIR).expanduser()
        self.cwd = cwd or Path.cwd()

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    def find_env_file(self) -> Optional[Path]:
        """Smart .env file detection"""
        for path in (self.cwd / ".env", self.config_dir / ".env"):
            if path.exists():
                return path
        return None

    def load_yaml(self) -> Dict[str, Any]:
        """
        Load config.yml (empty dict if absent).

        Raises:
            ConfigurationError: If the file is not a YAML mapping
        """
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                "Invalid config file", context=f"Path: {self.config_path}, Error: {e}"
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a mapping", context=f"Path: {self.config_path}"
            )
        return data

    def _env_overrides(self, source: Dict[str, Optional[str]]) -> Dict[str, str]:
        overrides = {}
        for name in _FIELD_TYPES:
            value = source.get(f"{ENV_PREFIX}{name.upper()}")
            if value:
                overrides[name] = value
        return overrides

    def load(self) -> ClientConfig:
        """
        Resolve the client configuration.

        Raises:
            ConfigurationError: If a value has the wrong type
        """
        raw: Dict[str, Any] = {}
        raw.update({k: v for k, v in self.load_yaml().items() if k in _FIELD_TYPES})

        env_file = self.find_env_file()
        if env_file:
            raw.update(self._env_overrides(dotenv_values(env_file)))

        raw.update(self._env_overrides(dict(os.environ)))

        values: Dict[str, Any] = {"config_dir": self.config_dir}
        for name, value in raw.items():
            if value is None:
                continue
            try:
                values[name] = _FIELD_TYPES[name](value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid value for '{name}': {value!r}",
                    context=f"Expected {_FIELD_TYPES[name].__name__}",
                )

        return ClientConfig(**values)

    def set_value(self, key: str, value: str) -> Path:
        """
        Persist a single key to config.yml.

        Raises:
            ConfigurationError: If the key is unknown or the value invalid
        """
        if key not in _FIELD_TYPES:
            known = ", ".join(f.name for f in fields(ClientConfig) if f.name in _FIELD_TYPES)
            raise ConfigurationError(f"Unknown config key '{key}'", context=f"Known keys: {known}")

        try:
            typed = _FIELD_TYPES[key](value)
        except ValueError:
            raise ConfigurationError(
                f"Invalid value for '{key}': {value!r}",
                context=f"Expected {_FIELD_TYPES[key].__name__}",
            )

        data = self.load_yaml()
        data[key] = typed

        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        return self.config_path
