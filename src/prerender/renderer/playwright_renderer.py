"""Playwright-based renderer for the client-rendered report page."""

import logging

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from prerender.config import MarkerConfig, RendererConfig
from prerender.renderer.base import BaseRenderer, Failed, Rendered, RenderOutcome, title_from_head
from prerender.utils.url_utils import render_url

logger = logging.getLogger(__name__)

_HEAD_SCRIPT = "() => document.head ? document.head.outerHTML : ''"

# Everything strictly between the two marker siblings, serialized by the
# browser. Returns null when the markers are missing, not siblings, or
# out of order.
_FRAGMENT_SCRIPT = """([attr, beginValue, endValue]) => {
    const begin = document.querySelector(`[${attr}="${beginValue}"]`);
    const end = document.querySelector(`[${attr}="${endValue}"]`);
    if (!begin || !end || begin.parentNode !== end.parentNode) return null;
    if (!(begin.compareDocumentPosition(end) & Node.DOCUMENT_POSITION_FOLLOWING)) {
        return null;
    }
    const range = document.createRange();
    range.setStartAfter(begin);
    range.setEndBefore(end);
    const holder = document.createElement('div');
    holder.appendChild(range.cloneContents());
    return holder.innerHTML.trim();
}"""


class PlaywrightRenderer(BaseRenderer):
    """Render targets in one headless Chromium instance.

    Each target gets a fresh browser context, closed when the target is done.
    """

    def __init__(
        self,
        config: RendererConfig,
        markers: MarkerConfig,
        base_url: str,
        worker_id: int = 1,
    ):
        super().__init__(worker_id)
        self.config = config
        self.markers = markers
        self.base_url = base_url
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._result_check = f"() => Boolean({config.result_expression})"

    async def __aenter__(self):
        """Start Playwright and launch the browser."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=True)
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the browser and stop Playwright."""
        if self._browser:
            try:
                await self._browser.close()
            except Exception:
                logger.debug("Failed to close browser %d", self.worker_id, exc_info=True)
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, target: str) -> RenderOutcome:
        """Render one target in an isolated context."""
        if not self._browser:
            raise RuntimeError("Renderer not initialized. Use 'async with' context manager.")

        context = None
        try:
            options: dict = {
                "viewport": {
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
            }
            if self.config.user_agent:
                options["user_agent"] = self.config.user_agent
            context = await self._browser.new_context(**options)
            page = await context.new_page()
            return await self._render_page(page, target)
        except Exception as e:
            logger.debug("[browser %d] render failed: %s", self.worker_id, target, exc_info=True)
            return Failed(target=target, reason=_describe_error(e))
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception:
                    logger.debug("Failed to close context for %s", target, exc_info=True)

    async def _render_page(self, page: Page, target: str) -> RenderOutcome:
        url = render_url(self.base_url, target, self.config.query_param)
        logger.info("[browser %d] loading %s", self.worker_id, target)

        response = await page.goto(
            url,
            wait_until=self.config.wait_until,
            timeout=self.config.navigation_timeout_ms,
        )
        if response is None:
            return Failed(target=target, reason="No response received")
        if response.status >= 400:
            return Failed(target=target, reason=f"HTTP {response.status}")

        await self._wait_for_result(page, target)

        if self.config.settle_ms > 0:
            await page.wait_for_timeout(self.config.settle_ms)

        if not await page.evaluate(self._result_check):
            return Rendered(target=target, result_present=False)

        head = await page.evaluate(_HEAD_SCRIPT)
        fragment = await page.evaluate(
            _FRAGMENT_SCRIPT,
            [self.markers.attribute, self.markers.begin, self.markers.end],
        )
        title = title_from_head(head)
        logger.info("[browser %d] title: %s", self.worker_id, title)
        return Rendered(
            target=target,
            head=head or "",
            fragment=fragment,
            result_present=True,
            title=title,
        )

    async def _wait_for_result(self, page: Page, target: str) -> None:
        """Wait until the client app exposes a result, or the deadline passes."""
        # Playwright treats timeout=0 as "no deadline"
        if self.config.result_timeout_ms <= 0:
            return
        try:
            await page.wait_for_function(
                self._result_check, timeout=self.config.result_timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.warning(
                "[browser %d] no result for %s within %d ms",
                self.worker_id,
                target,
                self.config.result_timeout_ms,
            )


def _describe_error(error: Exception) -> str:
    """First line of an exception message; Playwright messages carry call logs."""
    lines = str(error).strip().splitlines()
    return lines[0] if lines else type(error).__name__
