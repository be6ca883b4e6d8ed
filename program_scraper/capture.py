"""
Rendered-page capture for detail pages whose content lives in a document viewer.

Some announcements embed the actual notice in a viewer widget (PDF/HWP
converters such as Synap or DX viewer) loaded inside an iframe. Its text is
not in the page HTML, so the page is rendered in Chromium and the viewer is
screenshotted in chunks for the vision extraction strategy.

Capture tiers, each falling back to the next:
    1. viewer iframe, scrolled and captured in CHUNK_HEIGHT slices
    2. primary content element, one screenshot
    3. nothing -> None
"""

import io
import time
import base64
import logging
from typing import Callable, List, Optional

from PIL import Image, UnidentifiedImageError
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from .config import Config
from .errors import RenderError
from .models import CaptureResult
from .retry import RetryPolicy, fixed_backoff


VIEWER_MARKERS = ('dxviewer', 'synap', 'pdf', 'docviewer', 'viewer')

LAUNCH_ARGS = ['--no-sandbox', '--disable-setuid-sandbox', '--window-size=1920,1080']
BASE_VIEWPORT = {'width': 1280, 'height': 2000}
MIN_CAPTURE_WIDTH = 1280
PRIMARY_CAPTURE_WIDTH = 1920

NAVIGATION_ATTEMPTS = 3
NAVIGATION_RETRY_DELAY = 5.0

PRIMARY_SELECTOR_TIMEOUT_MS = 10000
FRAME_POLL_INTERVAL_MS = 500
FRAME_POLL_TIMEOUT_MS = 40000
VIEWER_BODY_TIMEOUT_MS = 30000
CONTENT_READY_TIMEOUT_MS = 20000

HEIGHT_ROUNDS = 5
HEIGHT_ROUND_PAUSE_MS = 2000
HEIGHT_GROWTH_PAUSE_MS = 3000
INITIAL_SCROLL_Y = 500
SETTLED_HEIGHT = 1000
MIN_CONTENT_HEIGHT = 2000
MAX_CONTENT_HEIGHT = 20000

LAZY_SCROLL_STEP = 1000
LAZY_SCROLL_PAUSE_MS = 200
SCROLL_TOP_PAUSE_MS = 1000

CHUNK_HEIGHT = 3000
MAX_CHUNKS = 6
CHUNK_PAUSE_MS = 1000
CHUNK_QUALITY = 50
SINGLE_SHOT_QUALITY = 80

# Max luminance spread for a chunk to count as blank
BLANK_SPREAD = 2

SCROLL_TO_JS = "y => window.scrollTo(0, y)"
BODY_WIDTH_JS = "() => document.body.scrollWidth"
PAGE_HEIGHT_JS = "() => document.body.scrollHeight"
MAX_SCROLL_HEIGHT_JS = """() => {
    let maxH = document.body.scrollHeight;
    for (const el of document.querySelectorAll('*')) {
        if (el.scrollHeight > maxH) maxH = el.scrollHeight;
    }
    return maxH;
}"""
CONTENT_READY_JS = """() => {
    const images = Array.from(document.querySelectorAll('img'));
    const allLoaded = images.every(img => img.complete && img.naturalHeight > 0);
    return allLoaded && document.body.innerText.length > 100;
}"""


def best_effort_wait(wait: Callable, *args, **kwargs) -> bool:
    """Run a Playwright wait; True if it succeeded, False if it timed out"""
    try:
        wait(*args, **kwargs)
        return True
    except PlaywrightTimeout:
        return False


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


class BrowserSession:
    """Headless Chromium shared by every item of one crawl pass"""

    def __init__(self, config: Config, logger: logging.Logger):
        self.config = config
        self.logger = logger
        self._playwright = None
        self._browser = None

    def start(self) -> 'BrowserSession':
        self.logger.info("[render] Launching headless Chromium...")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.config.headless_mode, args=LAUNCH_ARGS
            )
        except PlaywrightError as e:
            self.close()
            raise RenderError(f"Unable to launch browser: {e}") from e
        return self

    def new_page(self):
        if self._browser is None:
            raise RenderError("Browser session is not started")
        return self._browser.new_page(viewport=BASE_VIEWPORT)

    def close(self):
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError as e:
                self.logger.warning(f"[render] Browser close failed: {e}")
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class RenderingCapturer:
    """Renders a detail page and captures its readable content as JPEG chunks"""

    def __init__(self, session: BrowserSession, config: Config, logger: logging.Logger,
                 sleep=time.sleep):
        self.session = session
        self.config = config
        self.logger = logger
        self.navigation_retry = RetryPolicy(
            max_attempts=NAVIGATION_ATTEMPTS,
            backoff=fixed_backoff(NAVIGATION_RETRY_DELAY),
            retryable=lambda exc: isinstance(exc, PlaywrightError),
            sleep=sleep,
            logger=logger,
            label='[render] navigation',
        )

    def capture(self, url: str, source_id: str, content_selector: str = 'body') -> Optional[CaptureResult]:
        """
        Capture a detail page.

        Returns None when no image at all could be produced; never raises for
        navigation, viewer or screenshot failures.
        """
        page = None
        try:
            page = self.session.new_page()
            self._navigate(page, url)

            if not best_effort_wait(page.wait_for_selector, content_selector,
                                    timeout=PRIMARY_SELECTOR_TIMEOUT_MS):
                self.logger.warning(f"[render] {content_selector} not found for {source_id}")

            chunks: List[str] = []
            from_viewer = False
            frame = self._find_viewer_frame(page)
            if frame is not None:
                self.logger.info(f"[render] Viewer frame found for {source_id}: {frame.url}")
                try:
                    chunks = self._drop_blank(self._capture_viewer(page, frame, source_id), source_id)
                    from_viewer = bool(chunks)
                except (PlaywrightError, RenderError) as e:
                    self.logger.warning(f"[render] Viewer capture failed for {source_id}: {e}")
            else:
                self.logger.info(f"[render] No viewer frame for {source_id}")

            if not chunks:
                self.logger.info(f"[render] Falling back to {content_selector} screenshot for {source_id}")
                try:
                    chunks = self._drop_blank(self._capture_primary(page, content_selector), source_id)
                except (PlaywrightError, RenderError) as e:
                    self.logger.warning(f"[render] Content screenshot failed for {source_id}: {e}")

            if not chunks:
                self.logger.error(f"[render] No screenshot produced for {source_id}")
                return None

            self.logger.info(f"[render] Captured {len(chunks)} chunk(s) for {source_id}")
            return CaptureResult(chunks=chunks, mime_type='image/jpeg', from_viewer=from_viewer)

        except (PlaywrightError, RenderError) as e:
            self.logger.error(f"[render] Error processing {source_id}: {e}")
            return None
        finally:
            if page is not None:
                try:
                    page.close()
                except PlaywrightError as e:
                    self.logger.warning(f"[render] Page close failed for {source_id}: {e}")

    def _navigate(self, page, url: str):
        try:
            self.navigation_retry.call(
                page.goto, url, wait_until='domcontentloaded', timeout=self.config.navigation_timeout
            )
        except PlaywrightError as e:
            raise RenderError(f"Navigation to {url} failed: {e}") from e

    def _find_viewer_frame(self, page):
        """Poll the page's frames until one looks like a document viewer"""
        for _ in range(FRAME_POLL_TIMEOUT_MS // FRAME_POLL_INTERVAL_MS):
            for frame in page.frames:
                if frame is page.main_frame:
                    continue
                frame_url = (frame.url or '').lower()
                if any(marker in frame_url for marker in VIEWER_MARKERS):
                    return frame
            page.wait_for_timeout(FRAME_POLL_INTERVAL_MS)
        return None

    def _capture_viewer(self, page, frame, source_id: str) -> List[str]:
        frame.wait_for_selector('body', timeout=VIEWER_BODY_TIMEOUT_MS)
        if not best_effort_wait(frame.wait_for_function, CONTENT_READY_JS,
                                timeout=CONTENT_READY_TIMEOUT_MS):
            self.logger.warning(f"[render] Content loading timeout for {source_id}, proceeding anyway")

        height = self._measure_height(page, frame)
        width = max(MIN_CAPTURE_WIDTH, int(frame.evaluate(BODY_WIDTH_JS) or 0))
        self.logger.info(f"[render] Viewer size for {source_id}: {width}x{height}")

        self._force_lazy_load(page, frame, height)
        page.set_viewport_size({'width': width, 'height': height + 200})

        body = frame.query_selector('body')
        if body is None:
            raise RenderError("Viewer body disappeared")

        chunks = []
        offset = 0
        while offset < height:
            if len(chunks) >= MAX_CHUNKS:
                self.logger.warning(
                    f"[render] Max chunks ({MAX_CHUNKS}) reached for {source_id}, "
                    f"{height - offset}px left uncaptured"
                )
                break
            chunk_height = min(CHUNK_HEIGHT, height - offset)

            # Virtualised viewers only paint what is near the scroll position
            frame.evaluate(SCROLL_TO_JS, offset)
            page.wait_for_timeout(CHUNK_PAUSE_MS)

            box = body.bounding_box()
            if not box:
                raise RenderError("Viewer body has no layout box")
            data = page.screenshot(
                type='jpeg',
                quality=CHUNK_QUALITY,
                full_page=True,
                clip={'x': box['x'], 'y': box['y'] + offset, 'width': width, 'height': chunk_height},
            )
            chunks.append(base64.b64encode(data).decode('ascii'))
            offset += chunk_height

        return chunks

    def _measure_height(self, page, frame) -> int:
        """Content height after letting lazily-rendered pages grow, clamped to capture bounds"""
        frame.evaluate(SCROLL_TO_JS, INITIAL_SCROLL_Y)
        final_height = MIN_CONTENT_HEIGHT
        for _ in range(HEIGHT_ROUNDS):
            current = int(frame.evaluate(MAX_SCROLL_HEIGHT_JS) or 0)
            if current > final_height:
                final_height = current
                self.logger.debug(f"[render] Detected height growth: {final_height}")
                frame.evaluate(SCROLL_TO_JS, final_height)
                page.wait_for_timeout(HEIGHT_GROWTH_PAUSE_MS)
            elif current > SETTLED_HEIGHT:
                break
            page.wait_for_timeout(HEIGHT_ROUND_PAUSE_MS)
        return clamp(final_height, MIN_CONTENT_HEIGHT, MAX_CONTENT_HEIGHT)

    def _force_lazy_load(self, page, frame, height: int):
        for y in range(0, height + 1, LAZY_SCROLL_STEP):
            frame.evaluate(SCROLL_TO_JS, y)
            page.wait_for_timeout(LAZY_SCROLL_PAUSE_MS)
        frame.evaluate(SCROLL_TO_JS, 0)
        page.wait_for_timeout(SCROLL_TOP_PAUSE_MS)

    def _capture_primary(self, page, content_selector: str) -> List[str]:
        element = page.query_selector(content_selector) or page.query_selector('body')
        if element is None:
            return []
        height = int(page.evaluate(PAGE_HEIGHT_JS) or 0)
        page.set_viewport_size({
            'width': PRIMARY_CAPTURE_WIDTH,
            'height': clamp(height + 100, BASE_VIEWPORT['height'], MAX_CONTENT_HEIGHT),
        })
        data = element.screenshot(type='jpeg', quality=SINGLE_SHOT_QUALITY)
        return [base64.b64encode(data).decode('ascii')]

    def _drop_blank(self, chunks: List[str], source_id: str) -> List[str]:
        """Remove chunks that are undecodable or a single flat colour"""
        kept = []
        for index, chunk in enumerate(chunks):
            try:
                with Image.open(io.BytesIO(base64.b64decode(chunk))) as image:
                    low, high = image.convert('L').getextrema()
            except (UnidentifiedImageError, OSError, ValueError) as e:
                self.logger.warning(f"[render] Chunk {index} for {source_id} is not a valid image: {e}")
                continue
            if high - low <= BLANK_SPREAD:
                self.logger.debug(f"[render] Chunk {index} for {source_id} is blank, dropped")
                continue
            kept.append(chunk)
        return kept
