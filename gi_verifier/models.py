"""Data model for extraction results and queued verification requests."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class Source(str, Enum):
    """Verification site that produced a result."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class ExtractionResult:
    """Provenance data extracted for one product code.

    ``invalid`` means the site explicitly declared the code not genuine. An
    empty ``attributes`` map with ``invalid`` unset is a separate outcome: the
    site answered but had nothing to show.
    """

    product_code: str
    source: Source
    attributes: Dict[str, str] = field(default_factory=dict)
    image_url: Optional[str] = None
    authorized_user: Optional[str] = None
    artisan: Optional[str] = None
    invalid: bool = False

    def __post_init__(self):
        if not self.product_code:
            raise ValueError("product_code is required")
        if self.invalid and (
            self.attributes or self.image_url or self.authorized_user or self.artisan
        ):
            raise ValueError("An invalid result cannot carry provenance data")
        # Detach from the caller's dict so the result stays immutable in practice.
        object.__setattr__(self, "attributes", dict(self.attributes))

    @classmethod
    def invalid_for(cls, product_code: str, source: Source) -> "ExtractionResult":
        return cls(product_code=product_code, source=source, invalid=True)

    @property
    def is_usable(self) -> bool:
        """True when the result is neither flagged invalid nor empty."""
        return not self.invalid and len(self.attributes) > 0

    def with_source(self, source: Source) -> "ExtractionResult":
        if source == self.source:
            return self
        return replace(self, source=source)

    def as_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready dict, omitting optional fields that are absent."""
        data: Dict[str, Any] = {
            "product_code": self.product_code,
            "attributes": dict(self.attributes),
            "invalid": self.invalid,
            "source": self.source.value,
        }
        if self.image_url:
            data["image_url"] = self.image_url
        if self.authorized_user:
            data["authorized_user"] = self.authorized_user
        if self.artisan:
            data["artisan"] = self.artisan
        return data


@dataclass
class PendingRequest:
    """A queued product code and the future its caller is waiting on."""

    product_code: str
    future: "Future[ExtractionResult]" = field(default_factory=Future)

    def resolve(self, result: ExtractionResult) -> None:
        self.future.set_result(result)

    def reject(self, error: BaseException) -> None:
        self.future.set_exception(error)
