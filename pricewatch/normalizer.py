"""
Snapshot Normalizer

Turns the raw fields scraped from one product card into a candidate
ProductRecord, applying size parsing and operator overrides on the way.
Snapshots that cannot become a valid record raise SnapshotRejected, which
carries the reason and the offending value.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from .models import DEFAULT_SOURCE_SITE, ProductRecord, RawSnapshot, RejectReason
from .overrides import OverrideTable
from .price_history import ensure_utc, new_history
from .size_parser import parse_size


logger = logging.getLogger(__name__)

DEFAULT_ID_PREFIX = "P"

DOLLARS_PATTERN = re.compile(r'\d+')
CENTS_PATTERN = re.compile(r'\d{1,2}')

# Reasons that are expected and not worth surfacing above DEBUG
QUIET_REASONS = {RejectReason.NO_PRICE}


class SnapshotRejected(Exception):
    """A snapshot that cannot be turned into a candidate record."""

    def __init__(self, reason: RejectReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


def truncate_to_hour(moment: datetime) -> datetime:
    """UTC timestamp with minutes, seconds and microseconds zeroed."""
    return ensure_utc(moment).replace(minute=0, second=0, microsecond=0)


def _clean_price_part(text: Optional[str]) -> str:
    if text is None:
        return ""
    return str(text).strip().replace('$', '').replace(',', '').lstrip('.').strip()


def parse_price(dollars: Optional[str], cents: Optional[str]) -> Optional[float]:
    """
    Combine the dollar and cent text of a price lockup.

    Returns None when both parts are blank (the product has no listed price).

    Raises:
        SnapshotRejected: INVALID_PRICE when either part is not numeric.
    """
    dollar_text = _clean_price_part(dollars)
    cent_text = _clean_price_part(cents)
    if not dollar_text and not cent_text:
        return None

    dollar_text = dollar_text or "0"
    cent_text = cent_text or "0"
    if not DOLLARS_PATTERN.fullmatch(dollar_text) or not CENTS_PATTERN.fullmatch(cent_text):
        raise SnapshotRejected(
            RejectReason.INVALID_PRICE,
            f"price={dollars!r}.{cents!r}"
        )
    return float(f"{dollar_text}.{cent_text}")


def derive_product_id(image_url: Optional[str], prefix: str = DEFAULT_ID_PREFIX) -> Optional[str]:
    """
    Product id from the image filename, e.g.
    '.../400x400/5012345.png?v=2' -> 'P5012345'.
    """
    if not image_url or not str(image_url).strip():
        return None
    path = urlparse(str(image_url).strip()).path
    filename = path.split('/')[-1]
    stem = filename.split('.')[0].strip()
    if not stem:
        return None
    return f"{prefix}{stem}"


def clean_categories(hints: Optional[List[str]]) -> List[str]:
    """Trimmed, de-duplicated category hints in first-seen order."""
    categories: List[str] = []
    for hint in hints or []:
        if hint is None:
            continue
        value = str(hint).strip()
        if value and value not in categories:
            categories.append(value)
    return categories


def _log_rejection(name: Optional[str], error: SnapshotRejected) -> None:
    label = name or "(unnamed product)"
    if error.reason in QUIET_REASONS:
        logger.debug("Skipped %s - %s", label, error.reason.value)
    elif error.reason == RejectReason.OVERRIDDEN_INVALID:
        logger.info("Skipped %s - overridden as an invalid product (%s)", label, error.detail)
    else:
        logger.warning("Rejected %s - %s (%s)", label, error.reason.value, error.detail)


def _build_candidate(snapshot: RawSnapshot, overrides: OverrideTable, observed_at: datetime,
                     source_site: str, id_prefix: str) -> ProductRecord:
    name = (snapshot.name or "").strip()
    if not name:
        raise SnapshotRejected(RejectReason.MISSING_NAME, "name is empty")

    price = parse_price(snapshot.dollars, snapshot.cents)
    if price is None:
        raise SnapshotRejected(RejectReason.NO_PRICE)

    product_id = derive_product_id(snapshot.image_url, id_prefix)
    if not product_id:
        raise SnapshotRejected(RejectReason.MISSING_ID, f"image_url={snapshot.image_url!r}")

    size = parse_size(snapshot.size, price).size
    categories = clean_categories(snapshot.categories)

    override = overrides.lookup(product_id)
    if override.is_invalid:
        raise SnapshotRejected(RejectReason.OVERRIDDEN_INVALID, product_id)
    if override.size_override:
        size = override.size_override
    if override.category_override:
        categories = [override.category_override]

    if not categories:
        raise SnapshotRejected(RejectReason.INVALID_PRODUCT, f"{product_id} has no category")

    # Unit price follows the final size, overridden or not
    unit = parse_size(size, price).unit_price if size else None
    timestamp = truncate_to_hour(observed_at)

    return ProductRecord(
        id=product_id,
        name=name,
        size=size,
        current_price=price,
        category=categories,
        source_site=(snapshot.source_site or source_site).strip(),
        price_history=new_history(timestamp, price),
        last_updated=timestamp,
        last_checked=timestamp,
        unit_price=unit.unit_price if unit else None,
        unit_name=unit.unit_name if unit else None,
        original_unit_quantity=unit.original_unit_quantity if unit else None,
    )


def normalize_snapshot(snapshot: RawSnapshot, overrides: Optional[OverrideTable] = None,
                       observed_at: Optional[datetime] = None,
                       source_site: str = DEFAULT_SOURCE_SITE,
                       id_prefix: str = DEFAULT_ID_PREFIX) -> ProductRecord:
    """
    Build a candidate record from a raw snapshot.

    Args:
        snapshot: Scraped fields for one product card
        overrides: Operator corrections keyed by product id
        observed_at: Wall-clock time of the scrape (defaults to now, UTC)
        source_site: Site used when the snapshot does not name one
        id_prefix: Prefix added to the image filename to form the id

    Returns:
        Candidate ProductRecord with a one-sample price history

    Raises:
        SnapshotRejected: the snapshot is not a usable product (logged here)
    """
    if observed_at is None:
        observed_at = datetime.now(timezone.utc)
    try:
        return _build_candidate(snapshot, overrides or OverrideTable(), observed_at,
                                source_site, id_prefix)
    except SnapshotRejected as e:
        _log_rejection(snapshot.name, e)
        raise
