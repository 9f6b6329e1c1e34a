from __future__ import annotations

from pathlib import Path

import pytest
import requests

from webapp_scripts.webapp_engine import GeneratorConfig, WebAppGenerator
from webapp_scripts.webapp_icons import IconInstaller


class FakeResponse:
    def __init__(self, content: bytes = b"", headers: dict[str, str] | None = None, status: int = 200):
        self.content = content
        self.headers = headers or {}
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, exc: Exception | None = None):
        self.response = response
        self.exc = exc
        self.calls: list[str] = []

    def get(self, url: str, timeout: int | None = None) -> FakeResponse:
        self.calls.append(url)
        if self.exc is not None:
            raise self.exc
        assert self.response is not None
        return self.response


@pytest.fixture
def fake_session():
    def make(content: bytes = b"", content_type: str = "", status: int = 200, exc: Exception | None = None) -> FakeSession:
        headers = {"Content-Type": content_type} if content_type else {}
        return FakeSession(FakeResponse(content, headers, status), exc)

    return make


@pytest.fixture
def home(tmp_path: Path) -> Path:
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def fake_browser(tmp_path: Path) -> Path:
    browser = tmp_path / "usr" / "bin" / "brave"
    browser.parent.mkdir(parents=True)
    browser.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    browser.chmod(0o755)
    return browser


@pytest.fixture
def config(home: Path, fake_browser: Path) -> GeneratorConfig:
    return GeneratorConfig(home=home, browser_candidates=[str(fake_browser)], wayland_wrapper="brave-wayland")


@pytest.fixture
def unreachable_session(fake_session) -> FakeSession:
    return fake_session(exc=requests.ConnectionError("unreachable"))


@pytest.fixture
def generator(config: GeneratorConfig, unreachable_session: FakeSession) -> WebAppGenerator:
    icons = IconInstaller.for_home(config.home, session=unreachable_session)
    return WebAppGenerator(config, icon_installer=icons)
