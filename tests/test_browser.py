"""Pytest tests for the Selenium adapter.

The driver is a MagicMock so no browser is needed.
"""

from __future__ import annotations

from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from selenium.common.exceptions import (
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)

from assistant.browser import BrowserPageLocator, SeleniumSurface, connect_browser
from assistant.errors import BrowserConnectionError, PageNotFoundError, SurfaceUnavailable
from assistant.scanner import BOARD_SELECTOR


def _driver(pages: dict[str, str]) -> MagicMock:
    """Fake driver whose tabs are ``{handle: url}``."""
    driver = MagicMock()
    driver.window_handles = list(pages)
    state = {"handle": next(iter(pages), None)}

    def _switch(handle):
        state["handle"] = handle

    driver.switch_to.window.side_effect = _switch
    type(driver).current_window_handle = PropertyMock(side_effect=lambda: state["handle"])
    type(driver).current_url = PropertyMock(side_effect=lambda: pages[state["handle"]])
    return driver


# ---------------------------------------------------------------------------
# connect_browser
# ---------------------------------------------------------------------------


class TestConnectBrowser:

    def test_attaches_to_debugging_port(self):
        with patch("assistant.browser.webdriver.Chrome") as chrome:
            driver = connect_browser(9333)
        assert driver is chrome.return_value
        options = chrome.call_args.kwargs["options"]
        assert options.experimental_options["debuggerAddress"] == "127.0.0.1:9333"

    def test_unreachable_browser(self):
        with patch("assistant.browser.webdriver.Chrome",
                   side_effect=WebDriverException("cannot connect to chrome")):
            with pytest.raises(BrowserConnectionError, match="9222"):
                connect_browser(9222)


# ---------------------------------------------------------------------------
# BrowserPageLocator
# ---------------------------------------------------------------------------


class TestPageLocator:

    @pytest.mark.asyncio
    async def test_prefers_game_url(self):
        driver = _driver({
            "h1": "https://www.google.com/",
            "h2": "https://www.chess.com/home",
            "h3": "https://www.chess.com/game/live/42",
        })
        page = await BrowserPageLocator(driver).find_game_page()
        assert page.identity == "https://www.chess.com/game/live/42"
        assert page.handle == "h3"

    @pytest.mark.asyncio
    async def test_any_chess_page_as_fallback(self):
        driver = _driver({
            "h1": "https://news.example.org/",
            "h2": "https://www.chess.com/home",
        })
        page = await BrowserPageLocator(driver).find_game_page()
        assert page.identity == "https://www.chess.com/home"

    @pytest.mark.asyncio
    async def test_no_chess_tab(self):
        driver = _driver({"h1": "https://www.google.com/"})
        with pytest.raises(PageNotFoundError, match="No chess.com tab found"):
            await BrowserPageLocator(driver).find_game_page()

    @pytest.mark.asyncio
    async def test_driver_failure_becomes_page_not_found(self):
        driver = _driver({"h1": "https://www.chess.com/play/online"})
        driver.switch_to.window.side_effect = WebDriverException("chrome not reachable")
        with pytest.raises(PageNotFoundError, match="Could not list browser tabs"):
            await BrowserPageLocator(driver).find_game_page()


# ---------------------------------------------------------------------------
# SeleniumSurface
# ---------------------------------------------------------------------------


class TestSeleniumSurface:

    @pytest.mark.asyncio
    async def test_evaluate_switches_to_own_tab(self):
        driver = _driver({"h1": "https://www.google.com/", "h2": "https://www.chess.com/game/1"})
        driver.execute_script.return_value = [{"pieceType": "wk", "squareNum": "51"}]
        surface = SeleniumSurface(driver, "h2", "https://www.chess.com/game/1")

        result = await surface.evaluate("return 1")

        driver.switch_to.window.assert_called_with("h2")
        driver.execute_script.assert_called_once_with("return 1")
        assert result == [{"pieceType": "wk", "squareNum": "51"}]

    @pytest.mark.asyncio
    async def test_closed_window_is_unavailable(self):
        driver = _driver({"h1": "https://www.chess.com/game/1"})
        driver.execute_script.side_effect = NoSuchWindowException("no such window")
        surface = SeleniumSurface(driver, "h1", "https://www.chess.com/game/1")
        with pytest.raises(SurfaceUnavailable):
            await surface.evaluate("return 1")

    @pytest.mark.asyncio
    async def test_script_errors_propagate(self):
        driver = _driver({"h1": "https://www.chess.com/game/1"})
        driver.execute_script.side_effect = WebDriverException("javascript error: x is not defined")
        surface = SeleniumSurface(driver, "h1", "https://www.chess.com/game/1")
        with pytest.raises(WebDriverException, match="javascript error"):
            await surface.evaluate("return x")

    @pytest.mark.asyncio
    async def test_wait_timeout(self):
        driver = _driver({"h1": "https://www.chess.com/game/1"})
        surface = SeleniumSurface(driver, "h1", "https://www.chess.com/game/1")
        with patch("assistant.browser.WebDriverWait") as wait:
            wait.return_value.until.side_effect = TimeoutException("timed out")
            with pytest.raises(TimeoutError):
                await surface.wait_for_selector(BOARD_SELECTOR, 2)
        wait.assert_called_once_with(driver, 2)
