"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"

# Fields parsed from comma-separated env values.
_LIST_FIELDS = {"excluded_dirs", "optional_assets"}


class Settings(BaseModel):
    app_name:          str = "mdmigrate"
    db_url:            str = "sqlite:///mdmigrate.db"
    parser_config:     str = Field(default="gfm-like", description="MarkdownIt parser preset name")
    max_section_level: int = Field(default=3, ge=2, le=6, description="Deepest heading level that opens a section")
    source_dir:        str = Field(default=".", description="Source tree holding docs and reference files")
    dest_dir:          str = Field(default="app", description="Existing scaffold to be mutated")
    docs_dir:          str = Field(default="docs", description="Documentation directory relative to source_dir")
    template_config:   str = Field(default="app-config.yaml", description="Configuration document with placeholders")
    local_config:      str = Field(default="app-config.local.yaml", description="Configuration document with literal values")
    values_file:       str | None = Field(default=None, description="YAML map of placeholder name to literal value")
    excluded_dirs:     list[str] = Field(default_factory=lambda: ["node_modules", ".git"])
    optional_assets:   list[str] = Field(
        default_factory=lambda: ["*.png", "*.svg", "*.ico", "favicon*", "public/*"],
        description="Glob deny-list of sources whose absence only warns",
    )
    role_paths:        dict[str, str] = Field(default_factory=dict, description="Logical role to relative path overrides")
    essential_dependencies: dict[str, str] = Field(default_factory=dict, description="Dependencies added to the app manifest in phase 1")
    auto_prerequisites: bool = Field(default=True, description="Run an earlier phase when its markers are missing")
    log_level:         str = Field(default="WARNING", description="Root logging level for CLI runs")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDMIGRATE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e

    for name in Settings.model_fields:
        if val := os.getenv(f"MDMIGRATE_{name.upper()}"):
            data[name] = [v.strip() for v in val.split(",") if v.strip()] if name in _LIST_FIELDS else val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)


def load_values(path: str | None) -> dict[str, str]:
    """Read a placeholder values file; returns {} when no file is configured."""
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Values file not found: {path}")
    try:
        data = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid values file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid values file {path}: expected a mapping, got {type(data).__name__}")
    return {str(k): str(v) for k, v in data.items()}
