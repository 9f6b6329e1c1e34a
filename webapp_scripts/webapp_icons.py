#!/usr/bin/env python3
"""Icon download and installation into the user's hicolor theme.

The icon is fetched once. SVG sources are rasterized with rsvg-convert and
raster sources are resized with ImageMagick. When the needed tool is missing
PNG and SVG originals are installed at the largest size only.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import requests

try:
    from webapp_scripts.webapp_common import (
        APP_NAME,
        ICON_DOWNLOAD_TIMEOUT,
        ICON_SIZES,
        ICON_THEME_RELATIVE,
        IconConversionUnavailable,
        IconFetchFailed,
        command_exists,
        run_cmd,
    )
except ModuleNotFoundError:
    from webapp_common import (
        APP_NAME,
        ICON_DOWNLOAD_TIMEOUT,
        ICON_SIZES,
        ICON_THEME_RELATIVE,
        IconConversionUnavailable,
        IconFetchFailed,
        command_exists,
        run_cmd,
    )

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@dataclass
class IconInstallResult:
    """Paths written for one icon plus any non-fatal problems."""

    installed: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def detect_icon_type(data: bytes, content_type: str = "") -> str:
    """Return "svg", "png" or "raster"."""
    ctype = content_type.split(";", 1)[0].strip().lower()
    if ctype == "image/svg+xml":
        return "svg"
    if data.startswith(PNG_MAGIC):
        return "png"
    head = data[:1024].lstrip().lower()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
        return "svg"
    return "raster"


def icon_path(theme_dir: Path, size: int, app_id: str, suffix: str = ".png") -> Path:
    return theme_dir / f"{size}x{size}" / "apps" / f"{app_id}{suffix}"


def _imagemagick_command() -> list[str] | None:
    if command_exists("magick"):
        return ["magick"]
    if command_exists("convert"):
        return ["convert"]
    return None


class IconInstaller:
    """Fetch an icon URL and install a size ladder for one app id."""

    def __init__(
        self,
        theme_dir: Path,
        sizes: Sequence[int] = ICON_SIZES,
        timeout: int = ICON_DOWNLOAD_TIMEOUT,
        session: Any = None,
        logger: logging.Logger | None = None,
    ):
        self.theme_dir = theme_dir
        self.sizes = sorted(set(sizes))
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(APP_NAME)

    @classmethod
    def for_home(cls, home: Path, **kwargs: Any) -> "IconInstaller":
        return cls(home / ICON_THEME_RELATIVE, **kwargs)

    def fetch(self, url: str) -> tuple[bytes, str]:
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise IconFetchFailed(f"Failed to download icon: {url} ({exc})") from exc
        data = resp.content or b""
        if not data:
            raise IconFetchFailed(f"Icon download was empty: {url}")
        return data, resp.headers.get("Content-Type", "")

    def install(self, url: str, app_id: str) -> IconInstallResult:
        result = IconInstallResult()
        try:
            data, content_type = self.fetch(url)
        except IconFetchFailed as exc:
            self.logger.warning("icon_fetch_failed id=%s url=%s err=%s", app_id, url, exc)
            result.warnings.append(str(exc))
            return result

        kind = detect_icon_type(data, content_type)
        with tempfile.TemporaryDirectory(prefix="webapp_icon_") as td:
            source = Path(td) / ("source.svg" if kind == "svg" else "source.img")
            source.write_bytes(data)
            try:
                self._install_ladder(source, kind, app_id, result)
            except IconConversionUnavailable as exc:
                self.logger.warning("icon_conversion_unavailable id=%s kind=%s", app_id, kind)
                result.warnings.append(str(exc))
                # hicolor only takes png and svg as-is
                if kind != "raster":
                    result.installed.append(self._install_original(data, kind, app_id))

        if result.installed:
            self.logger.info("icon_installed id=%s count=%s", app_id, len(result.installed))
        return result

    def _converter_for(self, kind: str) -> list[str]:
        if kind == "svg":
            if command_exists("rsvg-convert"):
                return ["rsvg-convert"]
            raise IconConversionUnavailable("rsvg-convert not found, installing SVG icon at largest size only")
        magick = _imagemagick_command()
        if magick is None and kind == "png":
            raise IconConversionUnavailable("ImageMagick not found, installing PNG icon at largest size only")
        if magick is None:
            raise IconConversionUnavailable("ImageMagick not found, icon format needs conversion, no icon installed")
        return magick

    def _install_ladder(self, source: Path, kind: str, app_id: str, result: IconInstallResult) -> None:
        tool = self._converter_for(kind)
        for size in self.sizes:
            target = icon_path(self.theme_dir, size, app_id)
            target.parent.mkdir(parents=True, exist_ok=True)
            if kind == "svg":
                cmd = [*tool, "-w", str(size), "-h", str(size), "-o", str(target), str(source)]
            else:
                # first frame only, .ico files carry several
                cmd = [*tool, f"{source}[0]", "-resize", f"{size}x{size}", str(target)]
            cp = run_cmd(cmd)
            if cp.returncode != 0 or not target.exists():
                msg = f"Icon conversion failed at {size}px: {(cp.stderr or '').strip() or cp.returncode}"
                self.logger.warning("icon_resize_failed id=%s size=%s rc=%s", app_id, size, cp.returncode)
                result.warnings.append(msg)
                continue
            result.installed.append(target)

    def _install_original(self, data: bytes, kind: str, app_id: str) -> Path:
        target = icon_path(self.theme_dir, max(self.sizes), app_id, ".svg" if kind == "svg" else ".png")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target
