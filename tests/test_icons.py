import subprocess
from pathlib import Path

import pytest

from webapp_scripts import webapp_icons
from webapp_scripts.webapp_common import ICON_SIZES
from webapp_scripts.webapp_icons import PNG_MAGIC, IconInstaller, detect_icon_type, icon_path

SVG = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg" width="8" height="8"></svg>\n'
PNG = PNG_MAGIC + b"\x00" * 32


@pytest.mark.parametrize(
    "data, content_type, expected",
    [
        (b"anything", "image/svg+xml; charset=utf-8", "svg"),
        (SVG, "", "svg"),
        (b"  <svg></svg>", "application/octet-stream", "svg"),
        (PNG, "image/png", "png"),
        (b"\xff\xd8\xff\xe0jpeg", "image/jpeg", "raster"),
    ],
)
def test_detect_icon_type(data, content_type, expected):
    assert detect_icon_type(data, content_type) == expected


def _fake_tool_run(calls):
    def run(cmd, *, timeout=120):
        calls.append(cmd)
        target = Path(cmd[cmd.index("-o") + 1]) if "-o" in cmd else Path(cmd[-1])
        target.write_bytes(b"resized")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    return run


def test_svg_is_rendered_at_every_size(tmp_path, fake_session, monkeypatch):
    calls = []
    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: name == "rsvg-convert")
    monkeypatch.setattr(webapp_icons, "run_cmd", _fake_tool_run(calls))
    installer = IconInstaller(tmp_path / "hicolor", session=fake_session(SVG, "image/svg+xml"))

    result = installer.install("https://example.com/icon.svg", "myapp")

    assert result.warnings == []
    assert result.installed == [icon_path(tmp_path / "hicolor", s, "myapp") for s in ICON_SIZES]
    assert all(cmd[0] == "rsvg-convert" for cmd in calls)
    assert (tmp_path / "hicolor" / "512x512" / "apps" / "myapp.png").read_bytes() == b"resized"


def test_raster_prefers_magick(tmp_path, fake_session, monkeypatch):
    calls = []
    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: name in {"magick", "convert"})
    monkeypatch.setattr(webapp_icons, "run_cmd", _fake_tool_run(calls))
    installer = IconInstaller(tmp_path / "hicolor", sizes=(16, 32), session=fake_session(PNG, "image/png"))

    result = installer.install("https://example.com/icon.png", "myapp")

    assert [c[0] for c in calls] == ["magick", "magick"]
    assert calls[0][2:4] == ["-resize", "16x16"]
    assert len(result.installed) == 2


def test_missing_tool_installs_original_at_largest_size(tmp_path, fake_session, monkeypatch):
    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: False)
    installer = IconInstaller(tmp_path / "hicolor", session=fake_session(PNG, "image/png"))

    result = installer.install("https://example.com/icon.png", "myapp")

    target = tmp_path / "hicolor" / "512x512" / "apps" / "myapp.png"
    assert result.installed == [target]
    assert target.read_bytes() == PNG
    assert any("ImageMagick" in w for w in result.warnings)


def test_missing_rsvg_keeps_svg_suffix(tmp_path, fake_session, monkeypatch):
    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: False)
    installer = IconInstaller(tmp_path / "hicolor", session=fake_session(SVG))

    result = installer.install("https://example.com/icon.svg", "myapp")

    assert result.installed == [tmp_path / "hicolor" / "512x512" / "apps" / "myapp.svg"]


def test_failed_size_is_a_warning(tmp_path, fake_session, monkeypatch):
    def run(cmd, *, timeout=120):
        if cmd[-1].endswith("/32x32/apps/myapp.png"):
            return subprocess.CompletedProcess(cmd, 1, "", "bad image")
        Path(cmd[-1]).write_bytes(b"ok")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: name == "convert")
    monkeypatch.setattr(webapp_icons, "run_cmd", run)
    installer = IconInstaller(tmp_path / "hicolor", sizes=(16, 32, 48), session=fake_session(PNG))

    result = installer.install("https://example.com/icon.png", "myapp")

    assert [p.parent.parent.name for p in result.installed] == ["16x16", "48x48"]
    assert result.warnings == ["Icon conversion failed at 32px: bad image"]


def test_http_error_is_reported_not_raised(tmp_path, fake_session):
    installer = IconInstaller(tmp_path / "hicolor", session=fake_session(b"", status=404))

    result = installer.install("https://example.com/missing.png", "myapp")

    assert result.installed == []
    assert "Failed to download icon" in result.warnings[0]
    assert not (tmp_path / "hicolor").exists()


def test_empty_download_is_reported(tmp_path, fake_session):
    result = IconInstaller(tmp_path / "hicolor", session=fake_session(b"")).install("https://e.example/i.png", "myapp")
    assert result.installed == []
    assert "empty" in result.warnings[0]


def test_missing_magick_skips_unconvertible_formats(tmp_path, fake_session, monkeypatch):
    monkeypatch.setattr(webapp_icons, "command_exists", lambda name: False)
    installer = IconInstaller(tmp_path / "hicolor", session=fake_session(b"\xff\xd8\xff\xe0jpeg", "image/jpeg"))

    result = installer.install("https://example.com/icon.jpg", "myapp")

    assert result.installed == []
    assert "no icon installed" in result.warnings[0]
    assert not (tmp_path / "hicolor").exists()
