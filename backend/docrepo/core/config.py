"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "DOCREPO_"
DEFAULT_CONFIG_PATH = Path("~/.config/docrepo/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "blob_root"): "blob_root",
    ("ingestion", "enabled"): "ingestion_enabled",
    ("ingestion", "user_id"): "ingestion_user_id",
    ("ingestion", "office_category_id"): "ingestion_office_category_id",
    ("ingestion", "document_category_id"): "ingestion_document_category_id",
    ("ocr", "executable"): "ocr_executable",
    ("ocr", "work_root"): "ocr_work_root",
    ("ocr", "input_dir"): "ocr_input_dir",
    ("ocr", "output_dir"): "ocr_output_dir",
    ("ocr", "logs_dir"): "ocr_logs_dir",
    ("ocr", "timeout_seconds"): "ocr_timeout_seconds",
    ("ocr", "max_text_chars"): "ocr_max_text_chars",
    ("ocr", "max_failure_chars"): "ocr_max_failure_chars",
    ("ocr", "batch_size"): "ocr_batch_size",
    ("search", "limit"): "search_limit",
}

_PATH_FIELDS = ("db_path", "blob_root", "ocr_work_root")


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".docrepo" / "docrepo.db")
    blob_root: Path = Field(default=Path.home() / ".docrepo" / "blobs")

    ingestion_enabled: bool = True
    ingestion_user_id: str = "system"
    # Both classification ids are only needed when a brand-new document is created.
    ingestion_office_category_id: int | None = None
    ingestion_document_category_id: int | None = None

    ocr_executable: str = "ocrmypdf"
    ocr_work_root: Path = Field(default=Path.home() / ".docrepo" / "ocr-work")
    ocr_input_dir: str = "input"
    ocr_output_dir: str = "output"
    ocr_logs_dir: str = "logs"
    ocr_timeout_seconds: float = Field(default=900.0, gt=0)
    ocr_max_text_chars: int = Field(default=200_000, gt=0)
    ocr_max_failure_chars: int = Field(default=1000, gt=0)
    ocr_batch_size: int = Field(default=3, gt=0)

    search_limit: int = Field(default=50, gt=0)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("path settings must be a path or string")

    @field_validator("ingestion_office_category_id", "ingestion_document_category_id", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("ocr_input_dir", "ocr_output_dir", "ocr_logs_dir")
    @classmethod
    def _plain_subdir(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned:
            raise ValueError("OCR working subdirectories must be plain directory names")
        return cleaned

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None

    @property
    def ocr_input_path(self) -> Path:
        return self.ocr_work_root / self.ocr_input_dir

    @property
    def ocr_output_path(self) -> Path:
        return self.ocr_work_root / self.ocr_output_dir

    @property
    def ocr_logs_path(self) -> Path:
        return self.ocr_work_root / self.ocr_logs_dir


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with DOCREPO_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
