from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .duplicates import DuplicateMode
from .periodic import Period
from .placement import PlacementPolicy


class AppendSettings(BaseModel):
    add_digest: bool = False
    use_lock: bool = True
    lock_timeout: float = Field(default=300.0, gt=0)
    placement_policy: PlacementPolicy = PlacementPolicy.APPEND
    ignore_checkbox_columns: bool = True
    skip: int = Field(default=1, ge=0)
    hash_algorithm: str = "sha1"
    duplicate_mode: DuplicateMode = DuplicateMode.DIGEST
    allow_raw_duplicate_scan: bool = False


class SweepSettings(BaseModel):
    source_tab: str = "Form Responses 1"
    destination_tab: Optional[str] = None
    delete_from_source: bool = True


class PeriodicSettings(BaseModel):
    period: Period = Period.MONTH
    abbreviated: bool = True
    template_name: Optional[str] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="FORM_UTILS_",
        env_nested_delimiter="__",
    )

    spreadsheet_id: Optional[str] = None
    service_account_file: Optional[Path] = None
    append: AppendSettings = Field(default_factory=AppendSettings)
    sweep: SweepSettings = Field(default_factory=SweepSettings)
    periodic: PeriodicSettings = Field(default_factory=PeriodicSettings)


def default_config_path() -> Path:
    return Path("~/.config/sheets-form-utils/config.yaml").expanduser()


def load_settings(path: Optional[Path] = None) -> Settings:
    path = path or default_config_path()
    if not path.exists():
        # allow running with env-only values
        return Settings()

    data = yaml.safe_load(path.read_text()) or {}
    return Settings.model_validate(data)
