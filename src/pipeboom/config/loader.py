from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pipeboom.config.schema import DaemonConfig
from pipeboom.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("~/.config/pipeboom/config.yaml").expanduser()


class ConfigLoader:
    """Reads the optional YAML config file and applies CLI overrides."""

    def __init__(self, path: Path = DEFAULT_CONFIG_PATH) -> None:
        self.path = path

    def load(self, overrides: dict[str, Any] | None = None) -> DaemonConfig:
        """Load the config file (defaults if absent). ``None`` overrides are ignored."""
        raw = self._read()
        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return DaemonConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(self.path, f"Validation error: {e}") from e

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = yaml.safe_load(self.path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(self.path, f"Invalid YAML: {e}") from e
        except OSError as e:
            raise ConfigError(self.path, f"Unreadable: {e}") from e
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError(self.path, "Expected a YAML mapping at top level")
        return raw
