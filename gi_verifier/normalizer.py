"""Convert scraped label/value table rows into structured provenance fields."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger


AUTHORIZED_USER_MARKERS = ("authorized gi user",)
ARTISAN_MARKERS = ("artisan", "weaver")


@dataclass
class NormalizedTable:
    attributes: Dict[str, str] = field(default_factory=dict)
    image_url: Optional[str] = None
    authorized_user: Optional[str] = None
    artisan: Optional[str] = None


def _clean_cells(row: Sequence[Optional[str]]) -> List[str]:
    return [cell.strip() for cell in row if cell and cell.strip()]


def normalize_rows(
    rows: Iterable[Sequence[Optional[str]]],
    image_urls: Iterable[Optional[str]] = (),
) -> NormalizedTable:
    """Route table rows into dedicated fields or the generic attribute map.

    Args:
        rows: Raw table rows, one list of cell texts per ``<tr>``.
        image_urls: Image sources found inside the results table, in DOM order.

    Returns:
        NormalizedTable with the first image, the special-cased authorized user
        and artisan values, and every other row keyed by its original label.
    """
    table = NormalizedTable()

    for raw_row in rows:
        cells = _clean_cells(raw_row)
        if len(cells) < 2:
            logger.debug(f"Skipping row with insufficient cells: {list(raw_row)}")
            continue

        label, value = cells[0], cells[1]
        lowered = label.lower()

        if any(marker in lowered for marker in AUTHORIZED_USER_MARKERS):
            table.authorized_user = value
        elif any(marker in lowered for marker in ARTISAN_MARKERS):
            table.artisan = value
        else:
            table.attributes[label] = value

    for url in image_urls:
        if url and url.strip():
            table.image_url = url.strip()
            break

    return table
