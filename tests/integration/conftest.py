"""Shared fixtures for beachpatrol integration tests.

These fixtures launch a real headless Chromium browser via Patchright in
incognito mode, so no profile directory is written.
"""

from __future__ import annotations

import urllib.parse
from pathlib import Path

import pytest

from beachpatrol.active_page import ActivePageTracker
from beachpatrol.browser import BrowserSession
from beachpatrol.config import BeachpatrolConfig, BrowserConfig

TEST_HTML = "data:text/html," + urllib.parse.quote(
    """<html><head><title>Test Page</title></head><body>
<h1>Test Page</h1>
<a href="data:text/plain,hello" download="hello.txt" id="dl">Download</a>
</body></html>"""
)


@pytest.fixture
def integration_config(commands_dir: Path) -> BeachpatrolConfig:
    """Headless incognito Chromium without the sandbox."""
    return BeachpatrolConfig(
        browser=BrowserConfig(
            incognito=True,
            launch_options={
                "headless": True,
                "chromium_sandbox": False,
                "ignore_default_args": ["--enable-automation"],
            },
        ),
        commands_dir=str(commands_dir),
    )


@pytest.fixture
async def browser_session(
    home: Path,
    monkeypatch: pytest.MonkeyPatch,
    integration_config: BeachpatrolConfig,
) -> BrowserSession:
    """Launch a real browser, yield the BrowserSession, close it afterwards."""
    monkeypatch.setenv("XDG_DOWNLOAD_DIR", str(home / "downloads"))
    session = BrowserSession(integration_config, ActivePageTracker())
    await session.launch()
    try:
        yield session  # type: ignore[misc]
    finally:
        await session.close()


@pytest.fixture
def test_html() -> str:
    return TEST_HTML


@pytest.fixture
async def html_page(browser_session: BrowserSession, test_html: str):
    """The session's first page, navigated to TEST_HTML."""
    page = browser_session.context.pages[0]
    await page.goto(test_html)
    return page
