"""Entry point used by callers that need a verified product record."""

from concurrent.futures import Future
from typing import Any, Dict, Optional

from loguru import logger

from gi_verifier.cache import InMemoryResultCache, ResultCache
from gi_verifier.models import ExtractionResult, Source
from gi_verifier.orchestrator import FallbackOrchestrator
from gi_verifier.scheduler import SerialScheduler
from gi_verifier.scraper import build_scraper


class VerificationService:
    """Cache, serial queue and primary/secondary fallback behind one call."""

    def __init__(self, scheduler: SerialScheduler):
        self.scheduler = scheduler

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        headless: Optional[bool] = None,
        cache: Optional[ResultCache] = None,
    ) -> "VerificationService":
        orchestrator = FallbackOrchestrator.from_config(
            config,
            build_scraper(Source.PRIMARY.value, config, headless=headless),
            build_scraper(Source.SECONDARY.value, config, headless=headless),
        )
        scheduler = SerialScheduler(orchestrator, cache if cache is not None else InMemoryResultCache())
        logger.debug("Verification service initialized")
        return cls(scheduler)

    @property
    def cache(self) -> ResultCache:
        return self.scheduler.cache

    def scrape_product(self, product_code: str) -> "Future[ExtractionResult]":
        """Queue ``product_code`` and return a future for its final result."""
        return self.scheduler.submit(product_code)

    def verify(self, product_code: str, timeout: Optional[float] = None) -> ExtractionResult:
        """Blocking variant of :meth:`scrape_product`."""
        return self.scrape_product(product_code).result(timeout=timeout)
