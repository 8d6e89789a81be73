"""The long-lived browser session owned by the server.

Launches chromium or firefox through patchright, either with a persistent
profile or in incognito mode, and wires every current and future page to the
download handler and the active-page bridge.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from patchright.async_api import async_playwright

from beachpatrol.active_page import ActivePageTracker
from beachpatrol.config import BeachpatrolConfig, launch_kwargs
from beachpatrol.downloads import save_download
from beachpatrol.paths import get_download_dir, get_profile_dir

logger = logging.getLogger("beachpatrol.browser")


class BrowserSession:
    """Holds the Playwright objects for the single daemon-managed session."""

    def __init__(
        self,
        config: BeachpatrolConfig,
        tracker: ActivePageTracker | None = None,
    ) -> None:
        self.config: BeachpatrolConfig = config
        self.tracker: ActivePageTracker = tracker or ActivePageTracker()

        # Playwright objects
        self.playwright: Any = None
        self.browser: Any = None
        self.context: Any = None

        self.download_dir: Path | None = None

        self._close_callbacks: list[Callable[[], Any]] = []
        self._closed: bool = False
        self._stopped: bool = False
        self._downloads: set[asyncio.Future] = set()

    # -- Browser lifecycle ---------------------------------------------------

    async def launch(self) -> None:
        """Launch the browser according to the current config."""
        bcfg = self.config.browser
        self.download_dir = get_download_dir()

        self.playwright = await async_playwright().start()
        browser_type = getattr(self.playwright, bcfg.browser_name)

        launch_opts = launch_kwargs(self.config)
        context_opts = dict(bcfg.context_options)

        if bcfg.incognito:
            self.browser = await browser_type.launch(**launch_opts)
            self.context = await self.browser.new_context(**context_opts)
            # launch() opens no page by default
            await self.context.new_page()
        else:
            profile_dir = get_profile_dir(bcfg.browser_name, bcfg.profile)
            self.context = await browser_type.launch_persistent_context(
                str(profile_dir),
                **launch_opts,
                **context_opts,
            )
            # Persistent context IS the browser
            self.browser = self.context

        logger.info(
            f"Launched {bcfg.browser_name} "
            f"({'incognito' if bcfg.incognito else f'profile {bcfg.profile!r}'})"
        )

        # ---- Post-launch setup ---------------------------------------------
        self.context.on("close", self._on_context_close)
        self.context.on("page", self._on_new_page_sync)
        for page in list(self.context.pages):
            self._setup_page_listeners(page)
        await self.tracker.attach_context(self.context)

    async def close(self) -> None:
        """Close the context, browser and driver.  Safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True
        try:
            if not self._closed and self.context is not None:
                await self.context.close()
            # An incognito browser outlives its context
            if self.browser is not None and self.browser is not self.context:
                await self.browser.close()
        except Exception as exc:
            logger.debug(f"Ignoring error while closing browser: {exc}")
        self._closed = True
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as exc:
                logger.debug(f"Ignoring error while stopping playwright: {exc}")

    @property
    def closed(self) -> bool:
        return self._closed

    def on_close(self, callback: Callable[[], Any]) -> None:
        """Register *callback* to run when the browser context closes."""
        self._close_callbacks.append(callback)

    # -- Event handlers ------------------------------------------------------

    def _on_context_close(self, _context: Any = None) -> None:
        logger.info("Browser context closed.")
        self._closed = True
        for callback in self._close_callbacks:
            callback()

    def _on_new_page_sync(self, page: Any) -> None:
        self._setup_page_listeners(page)

    def _setup_page_listeners(self, page: Any) -> None:
        """Route *page*'s downloads through :func:`save_download`."""

        def _on_download(download: Any) -> None:
            future = asyncio.ensure_future(
                save_download(download, self.download_dir or get_download_dir())
            )
            self._downloads.add(future)
            future.add_done_callback(self._downloads.discard)

        page.on("download", _on_download)
