"""Tracking of the page the user most recently focused.

Playwright has no "active tab changed" event.  A small browser extension
listens for native tab activation and navigation-completion events and, from
inside the activated page, issues ``fetch("https://playwright-active-page")``.
Every page routes that sentinel URL to :class:`ActivePageTracker`, which
records the requesting page as active and answers the request with a
synthetic 200 so the extension sees no error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlsplit

logger = logging.getLogger("beachpatrol.active_page")

SENTINEL_HOST = "playwright-active-page"
SENTINEL_URL = f"https://{SENTINEL_HOST}/"


def is_sentinel_url(url: str) -> bool:
    """Return ``True`` if *url* is the active-page sentinel request."""
    return urlsplit(url).hostname == SENTINEL_HOST


class ActivePageTracker:
    """Holds at most one reference to the most recently activated page.

    Written only by the sentinel route handler and the page ``close`` handler.
    Reads never observe a closed page.
    """

    def __init__(self) -> None:
        self._page: Any | None = None
        self._pending: set[asyncio.Future] = set()

    @property
    def page(self) -> Any | None:
        """Return the active page, or ``None``."""
        page = self._page
        if page is not None and page.is_closed():
            # The close event may not have been delivered yet.
            self._page = None
            return None
        return page

    def activate(self, page: Any) -> None:
        """Record *page* as active, replacing any previous page."""
        if page is not self._page:
            logger.debug(f"Active page changed: {page.url}")
        self._page = page

    def clear(self, page: Any) -> None:
        """Forget *page* if it is the active one."""
        if self._page is page:
            logger.debug("Active page closed")
            self._page = None

    # -- Bridge protocol -----------------------------------------------------

    async def attach(self, page: Any) -> None:
        """Install the sentinel route and close listener on *page*."""

        async def _on_sentinel(route: Any) -> None:
            self.activate(page)
            await route.fulfill(
                status=200,
                headers={"Access-Control-Allow-Origin": "*"},
                body="",
            )

        page.on("close", self.clear)
        await page.route(is_sentinel_url, _on_sentinel)

    async def attach_context(self, context: Any) -> None:
        """Attach to every existing page and every future page of *context*."""
        context.on("page", self._on_new_page_sync)
        for page in list(context.pages):
            await self.attach(page)

    def _on_new_page_sync(self, page: Any) -> None:
        future = asyncio.ensure_future(self.attach(page))
        self._pending.add(future)
        future.add_done_callback(self._on_attach_done)

    def _on_attach_done(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            # Pages closed right after opening reject route installation
            logger.debug(f"Could not attach active-page bridge: {future.exception()}")
