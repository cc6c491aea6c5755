"""Process-lifetime cache of final extraction results."""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from gi_verifier.models import ExtractionResult


class ResultCache(ABC):
    """Storage consulted before a product code is queued for extraction."""

    @abstractmethod
    def get(self, product_code: str) -> Optional[ExtractionResult]:
        """Return the cached result for ``product_code`` or None."""

    @abstractmethod
    def put(self, product_code: str, result: ExtractionResult) -> None:
        """Store the final result for ``product_code``."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every cached result."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    def __contains__(self, product_code: str) -> bool:
        return self.get(product_code) is not None


class InMemoryResultCache(ResultCache):
    """Unbounded dict cache: no TTL, no eviction, no persistence.

    Invalid verdicts are cached exactly like genuine results, so a code the
    upstream site later corrects keeps its old verdict until the process restarts.
    """

    def __init__(self):
        self._entries: Dict[str, ExtractionResult] = {}
        self._lock = threading.Lock()

    def get(self, product_code: str) -> Optional[ExtractionResult]:
        with self._lock:
            return self._entries.get(product_code)

    def put(self, product_code: str, result: ExtractionResult) -> None:
        with self._lock:
            self._entries[product_code] = result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
