"""Settings loaded from ``<home>/config.yml`` and the environment."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, Sequence, Tuple

import yaml

from pipescript.errors import ConfigError
from pipescript.storage import DEFAULT_DB_NAME

HOME_ENV_VAR = "PIPESCRIPT_HOME"
SCRIPT_ENV_VAR = "PIPESCRIPT_SCRIPT"
SHELL_ENV_VAR = "PIPESCRIPT_SHELL"
HISTORY_ENV_VAR = "PIPESCRIPT_HISTORY"

DEFAULT_HOME = Path("~") / ".pipeline"
DEFAULT_SCRIPT = "pipeline.kts"
CONFIG_FILENAME = "config.yml"

_KNOWN_KEYS = frozenset({"script", "shell", "history", "history_db"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for a pipescript invocation."""

    home: Path
    script: str = DEFAULT_SCRIPT
    shell: Optional[Tuple[str, ...]] = None
    history: bool = True
    history_db: Optional[Path] = None

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME

    @property
    def history_path(self) -> Path:
        if self.history_db is None:
            return self.home / DEFAULT_DB_NAME
        if self.history_db.is_absolute():
            return self.history_db
        return self.home / self.history_db

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Apply command line overrides, ignoring options left unset."""

        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def resolve_home(home: str | Path | None = None, environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    chosen = home or env.get(HOME_ENV_VAR) or DEFAULT_HOME
    return Path(chosen).expanduser()


def _parse_shell(value: Any, source: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        parts = shlex.split(value)
    elif isinstance(value, Sequence) and all(isinstance(part, str) for part in value):
        parts = list(value)
    else:
        raise ConfigError(f"'shell' in {source} must be a string or a list of strings")
    if not parts:
        raise ConfigError(f"'shell' in {source} must not be empty")
    return tuple(parts)


def _parse_bool(value: Any, key: str, source: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ConfigError(f"'{key}' in {source} must be a boolean")


def load_config_file(path: Path) -> MutableMapping[str, Any]:
    """Read the YAML settings file, returning an empty mapping when it is absent."""

    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}") from exc

    if data is None:
        return {}
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"{path} must contain a mapping")

    unknown = sorted(str(key) for key in data if key not in _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")
    return data


def load_settings(
    home: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from defaults, the YAML file, then environment variables."""

    env = os.environ if environ is None else environ
    settings = Settings(home=resolve_home(home, env))
    source = str(settings.config_path)
    data = load_config_file(settings.config_path)

    if "script" in data:
        if not isinstance(data["script"], str) or not data["script"].strip():
            raise ConfigError(f"'script' in {source} must be a non-empty string")
        settings = replace(settings, script=data["script"])
    if "shell" in data:
        settings = replace(settings, shell=_parse_shell(data["shell"], source))
    if "history" in data:
        settings = replace(settings, history=_parse_bool(data["history"], "history", source))
    if "history_db" in data:
        if not isinstance(data["history_db"], str):
            raise ConfigError(f"'history_db' in {source} must be a path string")
        settings = replace(settings, history_db=Path(data["history_db"]).expanduser())

    if env.get(SCRIPT_ENV_VAR):
        settings = replace(settings, script=env[SCRIPT_ENV_VAR])
    if env.get(SHELL_ENV_VAR):
        settings = replace(settings, shell=_parse_shell(env[SHELL_ENV_VAR], SHELL_ENV_VAR))
    if env.get(HISTORY_ENV_VAR):
        settings = replace(
            settings, history=_parse_bool(env[HISTORY_ENV_VAR], "history", HISTORY_ENV_VAR)
        )
    return settings


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_HOME",
    "DEFAULT_SCRIPT",
    "HISTORY_ENV_VAR",
    "HOME_ENV_VAR",
    "SCRIPT_ENV_VAR",
    "SHELL_ENV_VAR",
    "Settings",
    "load_config_file",
    "load_settings",
    "resolve_home",
]
