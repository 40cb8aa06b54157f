"""Headless-browser probe for the functional check.

The final file set is served from memory under a private origin, so nothing is written
to disk and generated pages never reach the local filesystem.
"""

from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import dataclass
from typing import List, Mapping, Optional, Protocol, Sequence, runtime_checkable
from urllib.parse import quote, unquote, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Route, async_playwright

from webgen_eval.eval.syntax import MARKUP_EXTENSIONS, SCRIPT_EXTENSIONS, STYLE_EXTENSIONS

logger = logging.getLogger(__name__)

ORIGIN = "http://webgen.sandbox"
SYNTHETIC_ENTRY = "/__webgen_index__.html"
_HOVER_HINT = re.compile(r"hover|mouseenter|mouseover", re.I)
_CLICK_HINT = re.compile(r"click", re.I)


@dataclass(frozen=True, slots=True)
class ProbeHints:
    """Interactions worth simulating, derived from a scenario's expectations."""

    selectors: tuple[str, ...] = ()
    click: bool = False
    hover: bool = False

    @classmethod
    def derive(cls, elements: Sequence[str], patterns: Sequence[re.Pattern[str]]) -> "ProbeHints":
        sources = [p.pattern for p in patterns]
        return cls(
            selectors=tuple(elements),
            click=bool(elements) or any(_CLICK_HINT.search(s) for s in sources),
            hover=any(_HOVER_HINT.search(s) for s in sources),
        )


@runtime_checkable
class FunctionalProbe(Protocol):
    async def probe(self, files: Mapping[str, str], hints: ProbeHints) -> List[str]:
        """Load the files, exercise them, and return every runtime error observed."""
        ...


def entry_point(files: Mapping[str, str]) -> str:
    if "/index.html" in files:
        return "/index.html"
    for path in files:
        if path.lower().endswith(MARKUP_EXTENSIONS):
            return path
    return SYNTHETIC_ENTRY


def synthetic_document(files: Mapping[str, str]) -> str:
    """A blank page pulling in every stylesheet and script, for markup-less projects."""

    styles = "".join(
        f'<link rel="stylesheet" href="{quote(path)}">' for path in files if path.lower().endswith(STYLE_EXTENSIONS)
    )
    scripts = "".join(
        f'<script src="{quote(path)}"></script>' for path in files if path.lower().endswith(SCRIPT_EXTENSIONS)
    )
    return f"<!DOCTYPE html><html><head>{styles}</head><body>{scripts}</body></html>"


def content_type(path: str) -> str:
    guessed, _ = mimetypes.guess_type(path)
    if path.lower().endswith(SCRIPT_EXTENSIONS):
        return "text/javascript"
    return guessed or "text/plain"


class PlaywrightProbe:
    """Renders the file set in headless Chromium and drives smoke interactions."""

    def __init__(
        self,
        *,
        duration_ms: int = 1500,
        headless: bool = True,
        allow_network: bool = False,
        navigation_timeout_ms: int = 10_000,
    ):
        self.duration_ms = duration_ms
        self.headless = headless
        self.allow_network = allow_network
        self.navigation_timeout_ms = navigation_timeout_ms

    async def probe(self, files: Mapping[str, str], hints: ProbeHints) -> List[str]:
        errors: List[str] = []
        entry = entry_point(files)

        async def serve(route: Route) -> None:
            url = route.request.url
            if not url.startswith(ORIGIN):
                if self.allow_network:
                    await route.continue_()
                else:
                    await route.abort()
                return
            path = unquote(urlparse(url).path) or "/"
            if path == SYNTHETIC_ENTRY and entry == SYNTHETIC_ENTRY:
                await route.fulfill(status=200, content_type="text/html", body=synthetic_document(files))
            elif path in files:
                await route.fulfill(status=200, content_type=content_type(path), body=files[path])
            else:
                await route.fulfill(status=404, content_type="text/plain", body="not found")

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=self.headless)
            try:
                context = await browser.new_context()
                await context.route("**/*", serve)
                page = await context.new_page()
                page.on("pageerror", lambda exc: errors.append(f"uncaught error: {exc}"))

                response = await page.goto(
                    ORIGIN + quote(entry), wait_until="load", timeout=self.navigation_timeout_ms
                )
                if response is not None and not response.ok:
                    errors.append(f"page failed to load: HTTP {response.status} for {entry}")
                    return errors

                await self._interact(page, hints)
                if self.duration_ms:
                    await page.wait_for_timeout(self.duration_ms)
            finally:
                await browser.close()
        return errors

    async def _interact(self, page, hints: ProbeHints) -> None:
        for selector in hints.selectors:
            try:
                locator = page.locator(selector).first
                if await locator.count() == 0 or not await locator.is_visible():
                    logger.debug("skipping interaction, %s not visible", selector)
                    continue
                if hints.hover:
                    await locator.hover(timeout=1000)
                if hints.click:
                    await locator.click(timeout=1000)
            except PlaywrightError as exc:
                # Overlays and detached nodes are not runtime errors of the page itself.
                logger.debug("interaction with %s failed: %s", selector, exc)


def build_probe(
    *, enabled: bool, duration_ms: int = 1500, headless: bool = True
) -> Optional[FunctionalProbe]:
    if not enabled:
        return None
    return PlaywrightProbe(duration_ms=duration_ms, headless=headless)
