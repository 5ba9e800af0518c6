"""Headless browser collaborator used for visual evidence."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1920, "height": 1080}


@dataclass
class PageCapture:
    """Screenshot plus whatever went wrong while loading the page."""
    image: bytes
    console_errors: List[str] = field(default_factory=list)
    http_errors: List[str] = field(default_factory=list)


class HeadlessBrowser(ABC):
    """Navigates to a URL and returns a full-page PNG."""

    @abstractmethod
    def screenshot(self, url: str, timeout_ms: int, settle_seconds: float) -> bytes:
        pass

    def capture(self, url: str, timeout_ms: int, settle_seconds: float) -> PageCapture:
        return PageCapture(image=self.screenshot(url, timeout_ms, settle_seconds))


class PlaywrightBrowser(HeadlessBrowser):
    """Chromium via the Playwright sync API."""

    def __init__(self, headless: bool = True):
        self.headless = headless

    def screenshot(self, url: str, timeout_ms: int, settle_seconds: float) -> bytes:
        return self.capture(url, timeout_ms, settle_seconds).image

    def capture(self, url: str, timeout_ms: int, settle_seconds: float) -> PageCapture:
        from playwright.sync_api import sync_playwright

        console_errors: List[str] = []
        http_errors: List[str] = []

        with sync_playwright() as p:
            browser = p.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            try:
                page = browser.new_page(viewport=VIEWPORT)
                page.on("console", lambda msg: console_errors.append(msg.text) if msg.type == "error" else None)
                page.on(
                    "response",
                    lambda resp: http_errors.append(f"{resp.status} {resp.url}") if resp.status >= 400 else None,
                )
                page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                page.wait_for_timeout(int(settle_seconds * 1000))
                image = page.screenshot(full_page=True)
            finally:
                browser.close()

        if console_errors or http_errors:
            logger.info("Page %s: %d console errors, %d HTTP errors", url, len(console_errors), len(http_errors))
        return PageCapture(image=image, console_errors=console_errors, http_errors=http_errors)
