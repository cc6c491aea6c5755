"""Playwright-based scrapers for the two GI verification websites."""

from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from playwright.sync_api import Error as PlaywrightError, Page, sync_playwright

from gi_verifier.config_loader import get_browser_config, get_source_config
from gi_verifier.errors import SourceExtractionError
from gi_verifier.models import ExtractionResult, Source
from gi_verifier.normalizer import normalize_rows


OUTCOME_READY_JS = """({tableSelector, invalidSelector, invalidText, firstOnly}) => {
    const headings = firstOnly
        ? [document.querySelector(invalidSelector)].filter(Boolean)
        : Array.from(document.querySelectorAll(invalidSelector));
    const invalid = headings.some((el) => (el.textContent || "").trim() === invalidText);
    return document.querySelector(tableSelector) !== null || invalid;
}"""

INVALID_MARKER_JS = """({invalidSelector, invalidText, firstOnly}) => {
    const headings = firstOnly
        ? [document.querySelector(invalidSelector)].filter(Boolean)
        : Array.from(document.querySelectorAll(invalidSelector));
    return headings.some((el) => (el.textContent || "").trim() === invalidText);
}"""

TABLE_EXTRACT_JS = """({tableSelector, rowSelector, cellSelector}) => {
    const table = document.querySelector(tableSelector);
    if (!table) {
        return {rows: [], images: []};
    }
    const rows = Array.from(table.querySelectorAll(rowSelector)).map((tr) =>
        Array.from(tr.querySelectorAll(cellSelector)).map((cell) => (cell.textContent || "").trim())
    );
    const images = Array.from(table.querySelectorAll("img"))
        .map((img) => img.src)
        .filter(Boolean);
    return {rows, images};
}"""


class VerificationScraper:
    """Drives one verification site end-to-end for a single product code.

    Every call to :meth:`extract` launches its own browser and closes it again
    before returning, so no state leaks between product codes.
    """

    source: Source = Source.PRIMARY

    def __init__(
        self,
        config: Dict[str, Any],
        headless: Optional[bool] = None,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ):
        """Initialize the scraper.

        Args:
            config: Configuration dictionary
            headless: Override headless mode from config
            playwright_factory: Callable returning a Playwright context manager
                with a ``start()`` method
        """
        self.browser_config = get_browser_config(config)
        self.source_config = get_source_config(config, self.source.value)
        self.headless = headless if headless is not None else self.browser_config.get("headless", True)
        self._playwright_factory = playwright_factory

        self.url = self.source_config["url"]
        self.navigation_timeout = int(self.source_config["navigation_timeout"])
        self.selector_timeout = int(self.source_config["selector_timeout"])
        self.result_timeout = int(self.source_config["result_timeout"])

        self.playwright = None
        self.browser = None
        self.context = None
        self.page: Optional[Page] = None

    @property
    def name(self) -> str:
        return self.source.value

    def start(self):
        """Launch an isolated browser session and open a blank page."""
        logger.debug(f"[{self.name}] Launching browser (headless={self.headless})")
        self.playwright = self._playwright_factory().start()

        launch_args = list(self.browser_config.get("launch_args", []))
        for arg in self.source_config.get("extra_launch_args") or []:
            if arg not in launch_args:
                launch_args.append(arg)

        self.browser = self.playwright.chromium.launch(headless=self.headless, args=launch_args)

        context_options: Dict[str, Any] = {"user_agent": self.browser_config.get("user_agent")}
        if self.source_config.get("viewport"):
            context_options["viewport"] = self.source_config["viewport"]
        self.context = self.browser.new_context(**context_options)

        self.page = self.context.new_page()
        self.page.set_default_timeout(self.selector_timeout)

    def stop(self):
        """Close the browser session; failures here never mask the extraction outcome."""
        for label, target, closer in (
            ("context", self.context, "close"),
            ("browser", self.browser, "close"),
            ("playwright", self.playwright, "stop"),
        ):
            if target is None:
                continue
            try:
                getattr(target, closer)()
            except Exception as e:
                logger.warning(f"[{self.name}] Failed to close {label} cleanly: {e}")
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None
        logger.debug(f"[{self.name}] Browser closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def extract(self, product_code: str) -> ExtractionResult:
        """Run the verification flow for ``product_code``.

        Returns:
            ExtractionResult tagged with this scraper's source. ``invalid`` is
            set when the site shows its "not genuine" marker.

        Raises:
            SourceExtractionError: If navigation, a wait or a DOM read fails.
        """
        logger.info(f"[{self.name}] Verifying product code {product_code} at {self.url}")
        try:
            self.start()
            self._navigate()
            self._wait_for_form()
            self._fill_code(product_code)
            self.page.click(self.source_config["submit_selector"])
            self._wait_for_outcome()

            if self._is_marked_invalid():
                logger.info(f"[{self.name}] Product code {product_code} marked as NOT genuine")
                return ExtractionResult.invalid_for(product_code, self.source)

            table = self._read_table()
            return self._build_result(product_code, table["rows"], table["images"])
        except PlaywrightError as e:
            marker = self._detect_anti_bot_marker()
            if marker:
                logger.warning(f"[{self.name}] Page looks like a bot challenge ('{marker}')")
            logger.warning(f"[{self.name}] Extraction failed for {product_code}: {e}")
            raise SourceExtractionError(
                self.name,
                product_code,
                f"{self.name} site failed for {product_code}: {e}",
            ) from e
        finally:
            self.stop()

    def _navigate(self) -> None:
        self.page.goto(
            self.url,
            wait_until=self.source_config["wait_until"],
            timeout=self.navigation_timeout,
        )

    def _wait_for_form(self) -> None:
        self.page.wait_for_selector(self.source_config["form_selector"], timeout=self.selector_timeout)

    def _fill_code(self, product_code: str) -> None:
        selector = self.source_config["input_selectors"][0]
        self.page.fill(selector, product_code)

    def _marker_args(self) -> Dict[str, Any]:
        # "first" checks only the first element matching the selector.
        return {
            "invalidSelector": self.source_config["invalid_selector"],
            "invalidText": self.source_config["invalid_text"],
            "firstOnly": self.source_config.get("invalid_match", "any") == "first",
        }

    def _wait_for_outcome(self) -> None:
        arg = dict(self._marker_args(), tableSelector=self.source_config["table_selector"])
        self.page.wait_for_function(OUTCOME_READY_JS, arg=arg, timeout=self.result_timeout)

    def _is_marked_invalid(self) -> bool:
        return bool(self.page.evaluate(INVALID_MARKER_JS, self._marker_args()))

    def _read_table(self) -> Dict[str, List[Any]]:
        data = self.page.evaluate(
            TABLE_EXTRACT_JS,
            {
                "tableSelector": self.source_config["table_selector"],
                "rowSelector": self.source_config["row_selector"],
                "cellSelector": self.source_config["cell_selector"],
            },
        ) or {}
        return {"rows": data.get("rows") or [], "images": data.get("images") or []}

    def _build_result(self, product_code: str, rows: List[List[str]], images: List[str]) -> ExtractionResult:
        table = normalize_rows(rows, images)
        logger.info(
            f"[{self.name}] Extracted {len(table.attributes)} attributes for {product_code} "
            f"(image={'present' if table.image_url else 'absent'}, "
            f"authorized_user={'present' if table.authorized_user else 'absent'}, "
            f"artisan={'present' if table.artisan else 'absent'})"
        )
        return ExtractionResult(
            product_code=product_code,
            source=self.source,
            attributes=table.attributes,
            image_url=table.image_url,
            authorized_user=table.authorized_user,
            artisan=table.artisan,
            invalid=False,
        )

    def _detect_anti_bot_marker(self) -> Optional[str]:
        """Return the configured challenge marker found in the page title or body, if any."""
        markers = [m.lower() for m in self.source_config.get("anti_bot_markers") or []]
        if not self.page or not markers:
            return None

        readers = (
            ("title", lambda: self.page.title()),
            ("body", lambda: self.page.locator("body").first.inner_text(timeout=1200)),
        )
        for label, read in readers:
            try:
                text = (read() or "").lower()
            except PlaywrightError as e:
                # The page may already be closed or navigating away.
                logger.debug(f"[{self.name}] Could not read page {label} for challenge check: {e}")
                continue
            found = next((m for m in markers if m in text), None)
            if found:
                return found
        return None


class PrimarySourceScraper(VerificationScraper):
    """cdiptqccgi.com: QR-code form, any ``<h3>`` may carry the invalid verdict."""

    source = Source.PRIMARY


class SecondarySourceScraper(VerificationScraper):
    """iictsrinagarcarpet-gi.org: slow site behind a ``#verifyform`` form."""

    source = Source.SECONDARY

    def _navigate(self) -> None:
        wait_until = self.source_config["wait_until"]
        try:
            super()._navigate()
        except PlaywrightError as e:
            fallback = self.source_config.get("fallback_wait_until")
            if not fallback or fallback == wait_until:
                raise
            logger.warning(
                f"[{self.name}] Navigation with wait_until={wait_until} failed ({e}); retrying with {fallback}"
            )
            self.page.goto(self.url, wait_until=fallback, timeout=self.navigation_timeout)

    def _fill_code(self, product_code: str) -> None:
        selectors = self.source_config["input_selectors"]
        for selector in selectors[:-1]:
            if self.page.query_selector(selector):
                self.page.fill(selector, product_code)
                return
        logger.debug(f"[{self.name}] Preferred inputs missing, filling {selectors[-1]}")
        self.page.fill(selectors[-1], product_code)


SCRAPERS = {
    Source.PRIMARY.value: PrimarySourceScraper,
    Source.SECONDARY.value: SecondarySourceScraper,
}


def build_scraper(name: str, config: Dict[str, Any], headless: Optional[bool] = None) -> VerificationScraper:
    """Instantiate the scraper registered for source ``name``."""
    try:
        scraper_cls = SCRAPERS[name]
    except KeyError:
        raise KeyError(f"Unknown verification source: {name}") from None
    return scraper_cls(config, headless=headless)
