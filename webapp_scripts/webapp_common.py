#!/usr/bin/env python3
"""Shared constants, helpers and error types for the web app tooling."""

from __future__ import annotations

import logging
import os
import pwd
import shutil
import subprocess
import tempfile
from pathlib import Path

# ------------------------------- Constants ---------------------------------- #

APP_NAME = "webapp_installer"
LOG_FILE_RELATIVE = Path(".local") / "share" / APP_NAME / "actions.log"

LOCAL_BIN_RELATIVE = Path(".local") / "bin"
APPLICATIONS_RELATIVE = Path(".local") / "share" / "applications"
WEBAPP_PROFILES_RELATIVE = Path(".local") / "share" / "webapps"
ICON_THEME_RELATIVE = Path(".local") / "share" / "icons" / "hicolor"
USER_PRESETS_RELATIVE = Path(".config") / "webapp-installer" / "presets.json"

DEFAULT_BROWSER_PREF = [
    "/usr/bin/brave",
    "/usr/bin/brave-browser",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/chromium",
]
DEFAULT_WAYLAND_WRAPPER = "brave-wayland"
DEFAULT_X11_BROWSER = "/usr/bin/brave"
WAYLAND_PLATFORM_FLAGS = ("--ozone-platform=wayland", "--enable-features=UseOzonePlatform")

ICON_SIZES = (16, 24, 32, 48, 64, 96, 128, 256, 512)
ICON_DOWNLOAD_TIMEOUT = 20

WINDOW_CLASS_PREFIX = "WebApp-"
FALLBACK_APP_ID = "webapp"


# -------------------------------- Errors ------------------------------------ #


class WebAppError(RuntimeError):
    """Base error for web app generation."""


class InvalidInput(WebAppError, ValueError):
    """A required field is missing or malformed."""


class NoBrowserFound(WebAppError):
    """None of the preferred browser binaries is installed."""


class IconFetchFailed(WebAppError):
    """The icon URL could not be downloaded."""


class IconConversionUnavailable(WebAppError):
    """No tool is available to rasterize the downloaded icon."""


# ------------------------------- Utilities ---------------------------------- #


def get_target_home() -> Path:
    if os.geteuid() == 0 and os.environ.get("SUDO_USER"):
        try:
            return Path(pwd.getpwnam(os.environ["SUDO_USER"]).pw_dir)
        except KeyError:
            pass
    return Path.home()


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def run_cmd(cmd: list[str], *, timeout: int = 120) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(cmd, check=False, text=True, capture_output=True, timeout=timeout)
    except FileNotFoundError:
        return subprocess.CompletedProcess(cmd, 127, "", f"command not found: {cmd[0]}")
    except Exception as exc:  # pylint: disable=broad-except
        return subprocess.CompletedProcess(cmd, 1, "", str(exc))


def ask_yes_no(question: str, *, default_yes: bool = False) -> bool:
    prompt = "[Y/n]" if default_yes else "[y/N]"
    try:
        raw = input(f"  {question} {prompt}: ").strip().lower()
    except EOFError:
        return False
    if not raw:
        return default_yes
    return raw in {"y", "yes"}


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def setup_logger(log_file: Path) -> logging.Logger:
    logger = logging.getLogger(APP_NAME)
    if logger.handlers:
        return logger

    chosen = log_file
    try:
        ensure_parent(log_file)
    except OSError:
        chosen = Path(tempfile.gettempdir()) / APP_NAME / "actions.log"
        ensure_parent(chosen)

    logger.setLevel(logging.INFO)
    fh = logging.FileHandler(chosen, encoding="utf-8")
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger
