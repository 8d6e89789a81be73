"""Shared fixtures for beachpatrol tests."""

from __future__ import annotations

import shutil
import tempfile
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

_ENV_VARS = (
    "CI",
    "XDG_SESSION_TYPE",
    "XDG_DATA_HOME",
    "XDG_DOWNLOAD_DIR",
    "BEACHPATROL_COMMANDS_DIR",
    "BEACHPATROL_MAX_MESSAGE_SIZE",
    "BEACHPATROL_LOG_LEVEL",
    "BEACHPATROL_BROWSER",
    "BEACHPATROL_BROWSER__BROWSER_NAME",
    "BEACHPATROL_BROWSER__PROFILE",
    "BEACHPATROL_BROWSER__INCOGNITO",
    "BEACHPATROL_BROWSER__EXTENSION_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's desktop environment out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Patch Path.home() so profiles and downloads live under tmp_path."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


@pytest.fixture
def data_home(monkeypatch):
    """A short XDG_DATA_HOME so Unix socket paths stay under 108 chars."""
    tmpdir = Path(tempfile.mkdtemp(prefix="bp-"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmpdir))
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def commands_dir(tmp_path):
    """An empty command scripts directory."""
    path = tmp_path / "commands"
    path.mkdir()
    return path


@pytest.fixture
def write_script(commands_dir):
    """Write a command script into ``commands_dir`` and return its path."""

    def _write(name: str, body: str) -> Path:
        path = commands_dir / f"{name}.py"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write


def make_page(url: str = "https://example.com") -> MagicMock:
    """A MagicMock standing in for a Playwright Page."""
    page = MagicMock()
    page.url = url
    page.is_closed = MagicMock(return_value=False)
    page.on = MagicMock()
    page.route = AsyncMock()
    page.goto = AsyncMock()
    page.close = AsyncMock()
    page.title = AsyncMock(return_value="Example")
    return page


@pytest.fixture
def mock_page():
    return make_page()


@pytest.fixture
def mock_context(mock_page):
    """A MagicMock standing in for a Playwright BrowserContext."""
    ctx = MagicMock()
    ctx.pages = [mock_page]
    ctx.new_page = AsyncMock(return_value=mock_page)
    ctx.close = AsyncMock()
    ctx.on = MagicMock()
    return ctx


@pytest.fixture
def page_factory():
    """Build additional mock pages."""
    return make_page
