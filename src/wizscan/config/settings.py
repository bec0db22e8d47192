from __future__ import annotations

import json
import os
import tomllib
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "WIZSCAN_CONFIG"


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class ScanningConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    default_network: str | None = None
    port: int = Field(default=38899, ge=1, le=65535)
    timeout: float = Field(default=2.0, gt=0)
    concurrency: int = Field(default=20, ge=5, le=50)
    batch_delay: float = Field(default=0.01, ge=0)
    progress_interval: int = Field(default=10, ge=1)


class RegistryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    stale_after_seconds: int = Field(default=300, gt=0)
    migrate_identities: bool = True

    @property
    def stale_after(self) -> timedelta:
        return timedelta(seconds=self.stale_after_seconds)


class VendorConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    oui_database: str | None = None
    ieee_registry: bool = True
    download_registry: bool = True
    keywords: list[str] = Field(
        default_factory=lambda: ["espressif", "wiz", "wizconnected", "signify"]
    )


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    vendor: VendorConfig = Field(default_factory=VendorConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def oui_path_from_settings(settings: Settings) -> Path | None:
    if settings.vendor.oui_database is None:
        return None
    return expand_path(settings.vendor.oui_database)


def _toml_value(value: object) -> str:
    # JSON strings, numbers and string lists are valid TOML
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


def _render_section(name: str, section: BaseModel) -> list[str]:
    lines = [f"[{name}]"]
    for key, value in section.model_dump().items():
        if value is None:
            continue
        lines.append(f"{key} = {_toml_value(value)}")
    lines.append("")
    return lines


def render_settings_toml(settings: Settings) -> str:
    lines = ["# wizscan configuration", ""]
    lines += _render_section("database", settings.database)
    lines += _render_section("scanning", settings.scanning)
    lines += _render_section("registry", settings.registry)
    lines += _render_section("vendor", settings.vendor)
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
