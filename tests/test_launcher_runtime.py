import shutil
import subprocess

import pytest

from webapp_scripts.webapp_engine import GeneratorConfig, WebAppGenerator, WebAppSpec

BASH = shutil.which("bash")
URL = "https://example.com/app?x=1&y=2"
APP_ARGS = ["--class=WebApp-myapp", f"--app={URL}"]
OZONE_ARGS = ["--ozone-platform=wayland", "--enable-features=UseOzonePlatform"]

pytestmark = pytest.mark.skipif(BASH is None, reason="bash not installed")

STUB = """#!/bin/sh
printf '%s\\n' "$0" "$@" > "$RECORD_DIR/${0##*/}"
"""


def _stub(directory, name):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(STUB, encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def dirs(tmp_path):
    stubs = tmp_path / "stubs"
    calls = tmp_path / "calls"
    stubs.mkdir()
    calls.mkdir()
    return stubs, calls


@pytest.fixture
def baked(tmp_path):
    return _stub(tmp_path / "opt", "brave")


@pytest.fixture
def launcher(home, baked):
    cfg = GeneratorConfig(home=home, browser_candidates=[str(baked), "chromium"], wayland_wrapper="brave-wayland")
    return WebAppGenerator(cfg).generate(WebAppSpec.create(name="My App", url=URL), "always").launcher


def _run(launcher, dirs, wayland=False):
    stubs, calls = dirs
    env = {"PATH": str(stubs), "RECORD_DIR": str(calls)}
    if wayland:
        env["WAYLAND_DISPLAY"] = "wayland-0"
    cp = subprocess.run([BASH, str(launcher)], env=env, check=False, capture_output=True, text=True, timeout=10)
    assert cp.returncode == 0, cp.stderr
    return {p.name: p.read_text(encoding="utf-8").splitlines() for p in calls.iterdir()}


def test_x11_runs_baked_browser(launcher, dirs, baked):
    _stub(dirs[0], "brave-wayland")

    calls = _run(launcher, dirs)

    assert calls == {"brave": [str(baked), *APP_ARGS]}


def test_wayland_prefers_wrapper_on_path(launcher, dirs):
    _stub(dirs[0], "brave-wayland")

    calls = _run(launcher, dirs, wayland=True)

    assert list(calls) == ["brave-wayland"]
    assert calls["brave-wayland"][1:] == APP_ARGS


def test_wayland_without_wrapper_passes_ozone_flags(launcher, dirs, baked):
    calls = _run(launcher, dirs, wayland=True)

    assert calls == {"brave": [str(baked), *OZONE_ARGS, *APP_ARGS]}


def test_missing_baked_browser_uses_fallback_names(launcher, dirs, baked):
    baked.unlink()
    _stub(dirs[0], "chromium")
    _stub(dirs[0], "xdg-open")

    calls = _run(launcher, dirs)

    assert list(calls) == ["chromium"]
    assert calls["chromium"][1:] == APP_ARGS


def test_no_browser_at_all_opens_url_with_xdg_open(launcher, dirs, baked):
    baked.unlink()
    _stub(dirs[0], "xdg-open")

    calls = _run(launcher, dirs, wayland=True)

    assert list(calls) == ["xdg-open"]
    assert calls["xdg-open"][1:] == [URL]
