"""Primary/secondary fallback policy for a single product code."""

import time
from typing import Any, Callable, Dict, Optional

from loguru import logger
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from gi_verifier.config_loader import get_orchestrator_config
from gi_verifier.errors import VerificationFailedError
from gi_verifier.models import ExtractionResult, Source


class FallbackOrchestrator:
    """Runs the primary scraper and falls back to the secondary one.

    Precedence between outcomes:

    * a usable primary result wins outright and the secondary site is not visited;
    * a usable secondary result wins over any unusable primary outcome;
    * between two returned but unusable results the primary one wins;
    * a returned result (even an invalid verdict) wins over a thrown error;
    * only when both sites throw does :meth:`run` raise.

    Secondary attempts are retried only when they raise. The wait after failed
    attempt ``n`` is ``backoff_seconds * n``.
    """

    def __init__(
        self,
        primary,
        secondary,
        secondary_attempts: int = 2,
        backoff_seconds: float = 2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if secondary_attempts < 1:
            raise ValueError("secondary_attempts must be at least 1")
        self.primary = primary
        self.secondary = secondary
        self.secondary_attempts = secondary_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Dict[str, Any], primary, secondary, **kwargs) -> "FallbackOrchestrator":
        orchestrator_cfg = get_orchestrator_config(config)
        return cls(
            primary,
            secondary,
            secondary_attempts=int(orchestrator_cfg.get("secondary_attempts", 2)),
            backoff_seconds=float(orchestrator_cfg.get("backoff_seconds", 2)),
            **kwargs,
        )

    def run(self, product_code: str) -> ExtractionResult:
        """Return the final result for ``product_code``.

        Raises:
            VerificationFailedError: If the primary site and every secondary
                attempt raised.
        """
        primary_result: Optional[ExtractionResult] = None
        primary_error: Optional[Exception] = None

        try:
            primary_result = self.primary.extract(product_code)
        except Exception as e:
            primary_error = e
            logger.error(f"Primary site failed for {product_code}: {e}")
        else:
            logger.info(
                f"Primary site returned for {product_code}: invalid={primary_result.invalid}, "
                f"attributes={len(primary_result.attributes)}"
            )
            if primary_result.is_usable:
                return primary_result.with_source(Source.PRIMARY)
            logger.info(f"Primary result for {product_code} is not usable, trying secondary site")

        try:
            secondary_result = self._secondary_retrying(product_code)(self.secondary.extract, product_code)
        except Exception as e:
            logger.error(
                f"All {self.secondary_attempts} secondary attempts failed for {product_code}: {e}"
            )
            if primary_error is not None:
                raise VerificationFailedError(product_code, primary_error, e) from e
            logger.info(f"Secondary site failed, falling back to primary result for {product_code}")
            return primary_result.with_source(Source.PRIMARY)

        logger.info(
            f"Secondary site returned for {product_code}: invalid={secondary_result.invalid}, "
            f"attributes={len(secondary_result.attributes)}"
        )
        if secondary_result.is_usable or primary_error is not None:
            return secondary_result.with_source(Source.SECONDARY)

        logger.info(f"Both sites returned unusable results for {product_code}, keeping primary")
        return primary_result.with_source(Source.PRIMARY)

    def _secondary_retrying(self, product_code: str) -> Retrying:
        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                f"Secondary attempt {retry_state.attempt_number}/{self.secondary_attempts} failed for "
                f"{product_code}: {retry_state.outcome.exception()}; "
                f"waiting {retry_state.next_action.sleep:.0f}s before retry"
            )

        return Retrying(
            stop=stop_after_attempt(self.secondary_attempts),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            retry=retry_if_exception_type(Exception),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
