"""Selenium adapter for an already-running Chrome/Edge.

The browser must be started with ``--remote-debugging-port``; the driver
attaches to it rather than launching a new one. Selenium is blocking, so
every driver call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any

from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from assistant.errors import (
    BrowserConnectionError,
    PageNotFoundError,
    SurfaceUnavailable,
    is_connection_lost,
)
from assistant.log import get_logger

logger = get_logger(__name__)

_CHESS_HOST = "chess.com"
_GAME_PATHS = ("/game/", "/play", "/live")


def connect_browser(port: int = 9222) -> webdriver.Chrome:
    """Attach to the browser listening on ``127.0.0.1:<port>``.

    Raises:
        BrowserConnectionError: If nothing answers on the debugging port.
    """
    options = webdriver.ChromeOptions()
    options.add_experimental_option("debuggerAddress", f"127.0.0.1:{port}")
    try:
        driver = webdriver.Chrome(options=options)
    except WebDriverException as exc:
        raise BrowserConnectionError(
            f"Could not connect to browser on debugging port {port}: {exc.msg or exc}"
        ) from exc
    logger.info("browser_connected", port=port)
    return driver


def _is_lost(exc: WebDriverException) -> bool:
    return isinstance(exc, (NoSuchWindowException, InvalidSessionIdException)) or is_connection_lost(exc)


class SeleniumSurface:
    """One browser tab, addressed by its window handle."""

    def __init__(self, driver: webdriver.Chrome, handle: str, url: str) -> None:
        self._driver = driver
        self._handle = handle
        self._url = url

    @property
    def identity(self) -> str:
        return self._url

    @property
    def handle(self) -> str:
        return self._handle

    def _execute(self, script: str) -> Any:
        try:
            if self._driver.current_window_handle != self._handle:
                self._driver.switch_to.window(self._handle)
            return self._driver.execute_script(script)
        except WebDriverException as exc:
            if _is_lost(exc):
                raise SurfaceUnavailable(exc.msg or str(exc)) from exc
            raise

    def _wait(self, selector: str, timeout: float) -> None:
        try:
            if self._driver.current_window_handle != self._handle:
                self._driver.switch_to.window(self._handle)
            WebDriverWait(self._driver, timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )
        except TimeoutException as exc:
            raise TimeoutError(f"{selector!r} not present after {timeout}s") from exc
        except WebDriverException as exc:
            if _is_lost(exc):
                raise SurfaceUnavailable(exc.msg or str(exc)) from exc
            raise

    async def evaluate(self, script: str) -> Any:
        return await asyncio.to_thread(self._execute, script)

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        await asyncio.to_thread(self._wait, selector, timeout)


class BrowserPageLocator:
    """Find the chess.com tab among the browser's windows.

    Game URLs (``/game/``, ``/play``, ``/live``) win over any other
    chess.com page.
    """

    def __init__(self, driver: webdriver.Chrome) -> None:
        self._driver = driver

    def _list_pages(self) -> list[tuple[str, str]]:
        pages = []
        try:
            for handle in self._driver.window_handles:
                self._driver.switch_to.window(handle)
                pages.append((handle, self._driver.current_url))
        except WebDriverException as exc:
            raise PageNotFoundError(f"Could not list browser tabs: {exc.msg or exc}") from exc
        return pages

    def _find(self) -> SeleniumSurface:
        pages = self._list_pages()
        chess_pages = [(h, url) for h, url in pages if _CHESS_HOST in url]
        for handle, url in chess_pages:
            if any(path in url for path in _GAME_PATHS):
                logger.info("page_found", url=url, kind="game")
                return SeleniumSurface(self._driver, handle, url)
        if chess_pages:
            handle, url = chess_pages[0]
            logger.info("page_found", url=url, kind="site")
            return SeleniumSurface(self._driver, handle, url)
        raise PageNotFoundError("No chess.com tab found! Please open chess.com in your browser.")

    async def find_game_page(self) -> SeleniumSurface:
        return await asyncio.to_thread(self._find)


__all__ = ["BrowserPageLocator", "SeleniumSurface", "connect_browser"]
