"""User preferences: where notes are auto-saved.

Preferences are a small YAML document in a caller-chosen config
directory::

    auto_save_dir: /home/me/Dropbox/Notes

A missing or unreadable file means "no preferences", never an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mdnotes.errors import NoteIOError, NoteValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


def default_auto_save_dir(documents_dir: Path) -> Path:
    return Path(documents_dir) / "HwanNote" / "Notes"


@dataclass
class AutoSaveDirInfo:
    custom_dir: str | None
    effective_dir: str
    is_default: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "customDir": self.custom_dir,
            "effectiveDir": self.effective_dir,
            "isDefault": self.is_default,
        }


class ConfigManager:
    """Reads and writes ``config.yaml`` inside *config_dir*."""

    DEFAULT_CONFIG: dict[str, Any] = {"auto_save_dir": None}

    def __init__(self, config_dir: Path) -> None:
        self.config_dir = Path(config_dir)

    @property
    def path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    def load(self) -> dict[str, Any]:
        """Saved preferences merged over :attr:`DEFAULT_CONFIG`."""
        config = dict(self.DEFAULT_CONFIG)
        try:
            saved = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return config
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self.path, exc)
            return config
        if isinstance(saved, dict):
            config.update(saved)
        return config

    def save(self, config: dict[str, Any]) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.path.write_text(yaml.safe_dump(config, allow_unicode=True), encoding="utf-8")
        except OSError as exc:
            raise NoteIOError(f"Could not write config {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Auto-save directory
    # ------------------------------------------------------------------

    def custom_auto_save_dir(self) -> str | None:
        """The configured override, if set and still present on disk."""
        custom = self.load().get("auto_save_dir")
        if not custom or not isinstance(custom, str):
            return None
        return custom if Path(custom).exists() else None

    def set_custom_auto_save_dir(self, directory: str | None) -> None:
        """Validate and store an override; ``None`` clears it."""
        if directory is not None:
            path = Path(directory)
            if not path.is_absolute():
                raise NoteValidationError("Path must be absolute")
            if not path.is_dir():
                raise NoteValidationError("Directory does not exist")
        config = self.load()
        config["auto_save_dir"] = directory
        self.save(config)

    def effective_auto_save_dir(self, default_dir: Path) -> Path:
        custom = self.custom_auto_save_dir()
        return Path(custom) if custom else Path(default_dir)

    def auto_save_dir_info(self, default_dir: Path) -> AutoSaveDirInfo:
        custom = self.custom_auto_save_dir()
        return AutoSaveDirInfo(
            custom_dir=custom,
            effective_dir=str(self.effective_auto_save_dir(default_dir)),
            is_default=custom is None,
        )
