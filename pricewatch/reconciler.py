"""
Reconciliation Engine

Classifies a candidate record against the stored record for the same
(source_site, id) and returns the record to persist. The rules are evaluated
in order:

1. Nothing stored                                   -> NEW
2. Price moved by more than 5c on a different day   -> PRICE_CHANGED
3. Stored categories empty or not recognised        -> INFO_CHANGED
4. Otherwise                                        -> ALREADY_UP_TO_DATE

The engine performs no I/O and never modifies the records it is given.
"""

import dataclasses
import logging
from datetime import datetime
from typing import Callable, FrozenSet, Optional

from .categories import VALID_CATEGORIES, needs_category_refresh
from .models import (
    DEFAULT_SOURCE_SITE, DatedPrice, ProductRecord, RawSnapshot, ReconciliationOutcome,
    UpsertResponse,
)
from .normalizer import DEFAULT_ID_PREFIX, SnapshotRejected, normalize_snapshot
from .overrides import OverrideTable
from .price_history import append_sample, can_append, ensure_utc, latest_sample


logger = logging.getLogger(__name__)

# Price movements at or below this are treated as parsing noise
PRICE_CHANGE_THRESHOLD = 0.05

# Stored-record lookup supplied by the caller: (source_site, product_id) -> record
StoredLookup = Callable[[str, str], Optional[ProductRecord]]


def price_differs(stored_price: float, candidate_price: float,
                  threshold: float = PRICE_CHANGE_THRESHOLD) -> bool:
    """True when two prices differ by more than the threshold, compared in cents."""
    return round(abs(stored_price - candidate_price), 2) > threshold


def same_calendar_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def _with_utc_dates(record: ProductRecord) -> ProductRecord:
    """Copy of a stored record with every timestamp in UTC; naive values are taken as UTC."""
    return dataclasses.replace(
        record,
        price_history=[DatedPrice(ensure_utc(s.date), s.price) for s in record.price_history],
        last_updated=ensure_utc(record.last_updated),
        last_checked=ensure_utc(record.last_checked),
    )


def reconcile(candidate: ProductRecord, stored: Optional[ProductRecord],
              vocabulary: FrozenSet[str] = VALID_CATEGORIES) -> ReconciliationOutcome:
    """
    Decide what to persist for a candidate record.

    Args:
        candidate: Freshly normalized record (one-sample history)
        stored: Record currently held for the same (source_site, id), if any
        vocabulary: Recognised category names

    Returns:
        ReconciliationOutcome tagged NEW, PRICE_CHANGED, INFO_CHANGED or
        ALREADY_UP_TO_DATE, carrying the record to persist.
    """
    if stored is None:
        return ReconciliationOutcome(response=UpsertResponse.NEW, product=candidate)

    previous = stored
    stored = _with_utc_dates(stored)

    sample = latest_sample(candidate.price_history)

    if (
        sample is not None
        and price_differs(stored.current_price, candidate.current_price)
        and not same_calendar_day(stored.last_updated, candidate.last_updated)
        and can_append(stored.price_history, sample.date)
    ):
        updated = dataclasses.replace(
            candidate,
            price_history=append_sample(stored.price_history, sample),
        )
        return ReconciliationOutcome(
            response=UpsertResponse.PRICE_CHANGED, product=updated, previous=previous
        )

    if needs_category_refresh(stored.category, vocabulary):
        updated = dataclasses.replace(
            candidate,
            price_history=list(stored.price_history),
            last_updated=stored.last_updated,
        )
        return ReconciliationOutcome(
            response=UpsertResponse.INFO_CHANGED, product=updated, previous=previous
        )

    touched = dataclasses.replace(
        stored,
        price_history=list(stored.price_history),
        category=list(stored.category),
        last_checked=max(stored.last_checked, candidate.last_checked),
    )
    return ReconciliationOutcome(
        response=UpsertResponse.ALREADY_UP_TO_DATE, product=touched, previous=previous
    )


def process_snapshot(snapshot: RawSnapshot, lookup: StoredLookup,
                     overrides: Optional[OverrideTable] = None,
                     vocabulary: FrozenSet[str] = VALID_CATEGORIES,
                     observed_at: Optional[datetime] = None,
                     source_site: str = DEFAULT_SOURCE_SITE,
                     id_prefix: str = DEFAULT_ID_PREFIX) -> ReconciliationOutcome:
    """
    Normalize a raw snapshot and reconcile it against the stored catalog.

    Rejected snapshots come back as REJECTED outcomes rather than exceptions,
    so a bad product card never interrupts a scrape. Errors raised by
    `lookup` are not caught.
    """
    try:
        candidate = normalize_snapshot(
            snapshot, overrides, observed_at=observed_at,
            source_site=source_site, id_prefix=id_prefix,
        )
    except SnapshotRejected as e:
        return ReconciliationOutcome.rejected(e.reason, e.detail)

    stored = lookup(candidate.source_site, candidate.id)
    outcome = reconcile(candidate, stored, vocabulary)
    logger.debug("%s %s -> %s", candidate.id, candidate.name, outcome.response.value)
    return outcome
