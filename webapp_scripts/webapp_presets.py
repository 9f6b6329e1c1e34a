#!/usr/bin/env python3
"""Preset categories for batch creation.

Bundled presets live in presets.json next to this module. A user file with the
same layout is merged on top of them: a category key present in both is
replaced by the user's version, new keys are added.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

try:
    from webapp_scripts.webapp_common import USER_PRESETS_RELATIVE, InvalidInput
except ModuleNotFoundError:
    from webapp_common import USER_PRESETS_RELATIVE, InvalidInput

BUNDLED_PRESETS = Path(__file__).with_name("presets.json")


class PresetApp(BaseModel):
    name: str
    url: str

    @field_validator("name", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class PresetCategory(BaseModel):
    title: str
    apps: list[PresetApp] = Field(default_factory=list)


class PresetCatalog(BaseModel):
    categories: dict[str, PresetCategory] = Field(default_factory=dict)

    def get(self, key: str) -> PresetCategory:
        wanted = key.strip().lower()
        for name, category in self.categories.items():
            if name.lower() == wanted:
                return category
        known = "|".join(self.categories) or "none"
        raise InvalidInput(f"Unknown category: {key} (use {known})")

    def merged_with(self, other: "PresetCatalog") -> "PresetCatalog":
        merged = {k.lower(): v for k, v in self.categories.items()}
        for name, category in other.categories.items():
            merged[name.lower()] = category
        return PresetCatalog(categories=merged)


def _read_catalog(path: Path) -> PresetCatalog:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidInput(f"Preset file is not valid JSON: {path} ({exc})") from exc
    try:
        return PresetCatalog.model_validate(data)
    except ValidationError as exc:
        raise InvalidInput(f"Preset file is malformed: {path}\n{exc}") from exc


def load_presets(home: Path, presets_file: str | Path | None = None) -> PresetCatalog:
    """Load bundled presets merged with the user's file.

    An explicit presets_file must exist. Without one, the user file under
    ~/.config/webapp-installer/ is used when present.
    """
    catalog = _read_catalog(BUNDLED_PRESETS)
    if presets_file:
        path = Path(presets_file).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Preset file not found: {path}")
    else:
        path = home / USER_PRESETS_RELATIVE
        if not path.exists():
            return catalog
    return catalog.merged_with(_read_catalog(path))
