"""
Settings for the dryer record manager, loaded from YAML.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_PAGE_SIZE = 20
DEFAULT_DRYER_MODEL = "vt8"
DEFAULT_SUPPORTED_MODELS = ["vt1", "vt5", "vt6", "vt7", "vt8"]
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
RECORD_TYPE_POLICIES = ("skip", "reject")


class ConfigError(ValueError):
    """Raised when the settings file is missing or invalid."""


@dataclass
class Settings:
    """Runtime settings."""
    storage_dir: Path = field(default_factory=lambda: Path.home() / ".dryer_records")
    page_size: int = DEFAULT_PAGE_SIZE
    default_dryer_model: str = DEFAULT_DRYER_MODEL
    supported_models: list[str] = field(default_factory=lambda: list(DEFAULT_SUPPORTED_MODELS))
    unrecognized_record_type: str = "skip"
    header_fuzzy_threshold: int = 80
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_dir": str(self.storage_dir),
            "page_size": self.page_size,
            "default_dryer_model": self.default_dryer_model,
            "supported_models": list(self.supported_models),
            "unrecognized_record_type": self.unrecognized_record_type,
            "header_fuzzy_threshold": self.header_fuzzy_threshold,
            "log_level": self.log_level,
            "log_format": self.log_format
        }


def _resolve_path(base: Path, value: str) -> Path:
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = (base / candidate).resolve()
    return candidate


def settings_from_dict(raw: dict[str, Any], base_dir: Optional[Path] = None) -> Settings:
    """
    Build Settings from a parsed mapping; missing keys keep their defaults.

    Raises:
        ConfigError: if a value has the wrong type or is out of range
    """
    settings = Settings()
    base_dir = base_dir or Path.cwd()

    try:
        if raw.get("storage_dir"):
            settings.storage_dir = _resolve_path(base_dir, str(raw["storage_dir"]))
        if "page_size" in raw:
            settings.page_size = int(raw["page_size"])
        if raw.get("default_dryer_model"):
            settings.default_dryer_model = str(raw["default_dryer_model"]).strip().lower()
        if raw.get("supported_models"):
            settings.supported_models = [str(m).strip().lower() for m in raw["supported_models"]]
        if raw.get("unrecognized_record_type"):
            settings.unrecognized_record_type = str(raw["unrecognized_record_type"]).strip().lower()
        if "header_fuzzy_threshold" in raw:
            settings.header_fuzzy_threshold = int(raw["header_fuzzy_threshold"])
        if raw.get("log_level"):
            settings.log_level = str(raw["log_level"]).upper()
        if raw.get("log_format"):
            settings.log_format = str(raw["log_format"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid setting: {exc}") from exc

    if settings.unrecognized_record_type not in RECORD_TYPE_POLICIES:
        raise ConfigError(
            f"unrecognized_record_type must be one of {RECORD_TYPE_POLICIES}, "
            f"got {settings.unrecognized_record_type!r}"
        )
    if settings.page_size < 1:
        raise ConfigError("page_size must be at least 1")
    if not 0 <= settings.header_fuzzy_threshold <= 100:
        raise ConfigError("header_fuzzy_threshold must be between 0 and 100")
    if settings.default_dryer_model not in settings.supported_models:
        raise ConfigError(
            f"default_dryer_model {settings.default_dryer_model!r} is not in supported_models"
        )
    return settings


def load_settings(path: Optional[Path | str] = None) -> Settings:
    """
    Load settings from a YAML file. With no path, return the defaults.

    Raises:
        ConfigError: if the file does not exist or holds invalid values
    """
    if path is None:
        return Settings()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return settings_from_dict(raw, path.parent)


def configure_logging(settings: Settings) -> None:
    """Set up root logging; called once by the host application at startup."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=settings.log_format,
    )
