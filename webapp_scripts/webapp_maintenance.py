#!/usr/bin/env python3
"""Maintenance of already installed web apps.

- fix_launchers: upgrade old launchers that hardcode BROWSER_BIN so they pick
  the Wayland wrapper at run time. Safe to run repeatedly.
- list_installed: inventory of desktop entries created by the generator.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

try:
    from webapp_scripts.webapp_common import (
        APP_NAME,
        APPLICATIONS_RELATIVE,
        DEFAULT_WAYLAND_WRAPPER,
        DEFAULT_X11_BROWSER,
        WINDOW_CLASS_PREFIX,
    )
except ModuleNotFoundError:
    from webapp_common import (
        APP_NAME,
        APPLICATIONS_RELATIVE,
        DEFAULT_WAYLAND_WRAPPER,
        DEFAULT_X11_BROWSER,
        WINDOW_CLASS_PREFIX,
    )

RE_BROWSER_LINE = re.compile(r"^BROWSER_BIN=")
RE_APP_URL = re.compile(r"^APP_URL=(.*)$", re.MULTILINE)
RE_DESKTOP_KEY = r"^{key}=(.*)$"


@dataclass
class FixReport:
    fixed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.fixed) + len(self.skipped)


def is_webapp_launcher(text: str) -> bool:
    return "APP_URL=" in text and "BROWSER_BIN=" in text


def already_fixed(text: str) -> bool:
    return "WAYLAND_DISPLAY" in text


def session_detect_block(x11_browser: str, wayland_wrapper: str) -> list[str]:
    wl = shlex.quote(wayland_wrapper)
    return [
        f"# Auto-detect session type at runtime: {wayland_wrapper} on Wayland, {x11_browser} on X11",
        f'if [[ -n "${{WAYLAND_DISPLAY:-}}" ]] && command -v {wl} >/dev/null 2>&1; then',
        f"    BROWSER_BIN={wl}",
        "else",
        f"    BROWSER_BIN={shlex.quote(x11_browser)}",
        "fi",
    ]


def rewrite_launcher_text(text: str, x11_browser: str, wayland_wrapper: str) -> str:
    out: list[str] = []
    for line in text.splitlines():
        if RE_BROWSER_LINE.match(line):
            out.extend(session_detect_block(x11_browser, wayland_wrapper))
            continue
        out.append(line)
    return "\n".join(out) + ("\n" if text.endswith("\n") else "")


def _replace_file(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def fix_launchers(
    bin_dir: Path,
    x11_browser: str = DEFAULT_X11_BROWSER,
    wayland_wrapper: str = DEFAULT_WAYLAND_WRAPPER,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> FixReport:
    logger = logger or logging.getLogger(APP_NAME)
    report = FixReport(dry_run=dry_run)
    if not bin_dir.is_dir():
        return report

    for path in sorted(bin_dir.iterdir()):
        if not path.is_file() or not os.access(path, os.X_OK):
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        if not is_webapp_launcher(text):
            continue
        if already_fixed(text):
            report.skipped.append(path.name)
            continue
        if not dry_run:
            _replace_file(path, rewrite_launcher_text(text, x11_browser, wayland_wrapper))
            logger.info("launcher_fixed path=%s wrapper=%s x11=%s", path, wayland_wrapper, x11_browser)
        report.fixed.append(path.name)
    return report


# ------------------------------- Inventory ---------------------------------- #


@dataclass
class InstalledWebApp:
    app_id: str
    name: str
    desktop_entry: str
    launcher: str
    url: str
    launcher_exists: bool


def _desktop_value(text: str, key: str) -> str:
    m = re.search(RE_DESKTOP_KEY.format(key=re.escape(key)), text, re.MULTILINE)
    return m.group(1).strip() if m else ""


def _launcher_url(launcher: Path) -> str:
    try:
        text = launcher.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return ""
    m = RE_APP_URL.search(text)
    if not m:
        return ""
    try:
        parts = shlex.split(m.group(1))
    except ValueError:
        return m.group(1).strip()
    return parts[0] if parts else ""


def list_installed(home: Path) -> list[InstalledWebApp]:
    apps_dir = home / APPLICATIONS_RELATIVE
    if not apps_dir.is_dir():
        return []

    found: list[InstalledWebApp] = []
    for entry in sorted(apps_dir.glob("*.desktop")):
        try:
            text = entry.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue
        wm_class = _desktop_value(text, "StartupWMClass")
        if not wm_class.startswith(WINDOW_CLASS_PREFIX):
            continue
        exec_value = _desktop_value(text, "Exec")
        try:
            exec_path = shlex.split(exec_value)[0] if exec_value else ""
        except ValueError:
            exec_path = exec_value
        launcher = Path(exec_path) if exec_path else None
        found.append(
            InstalledWebApp(
                app_id=wm_class[len(WINDOW_CLASS_PREFIX):],
                name=_desktop_value(text, "Name"),
                desktop_entry=str(entry),
                launcher=exec_path,
                url=_launcher_url(launcher) if launcher and launcher.is_file() else "",
                launcher_exists=bool(launcher and launcher.exists()),
            )
        )
    return found
