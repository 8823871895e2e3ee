"""Configuration loading helpers for signature-builder."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import GlobalConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "signature_builder.yaml"
HOME_ENV = "SIGNATURE_BUILDER_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    config_path: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        if self.config_path is None:
            self.config_path = root / CONFIG_FILENAME
        else:
            self.config_path = self.config_path.expanduser().resolve()
        self.logs_dir = (root / "logs").resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: GlobalConfig | None = None

    @property
    def path(self) -> Path:
        assert self.locator.config_path is not None
        return self.locator.config_path

    def load(self) -> GlobalConfig:
        """Load the configuration file, falling back to defaults when absent."""
        if self._cache is not None:
            return self._cache
        if self.path.suffix not in CONFIG_EXTENSIONS:
            raise ConfigError(f"Unsupported configuration format: {self.path}")
        if self.path.exists():
            try:
                payload = _read_file(self.path)
                config = GlobalConfig.model_validate(payload)
            except (OSError, yaml.YAMLError, json.JSONDecodeError) as exc:
                raise ConfigError(f"Failed to read {self.path}: {exc}") from exc
            except ValidationError as exc:
                raise ConfigError(f"Invalid configuration in {self.path}: {exc}") from exc
        else:
            config = GlobalConfig()
        self._cache = config
        return config

    def save(self, config: GlobalConfig) -> Path:
        _write_file(self.path, config.model_dump(mode="json"))
        self._cache = config
        return self.path

    def resolved(self, **overrides: object) -> GlobalConfig:
        """Return the loaded config with CLI overrides applied and paths anchored."""
        config = self.load()
        updates = {key: value for key, value in overrides.items() if value is not None}
        if updates:
            try:
                config = GlobalConfig.model_validate({**config.model_dump(), **updates})
            except ValidationError as exc:
                raise ConfigError(f"Invalid option: {exc}") from exc
        assert self.locator.project_root is not None
        return config.resolve(self.locator.project_root)


__all__ = ["CONFIG_EXTENSIONS", "CONFIG_FILENAME", "ConfigLocator", "ConfigRepository"]
