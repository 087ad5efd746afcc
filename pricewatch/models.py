"""
Core data types for the catalog reconciliation engine.

A scraped listing arrives as a RawSnapshot, is normalized into a candidate
ProductRecord, and leaves the engine wrapped in a ReconciliationOutcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


DEFAULT_SOURCE_SITE = "paknsave.co.nz"


class UpsertResponse(Enum):
    """Classification of a snapshot against the stored catalog."""
    NEW = "new"
    PRICE_CHANGED = "price_changed"
    INFO_CHANGED = "info_changed"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    REJECTED = "rejected"


class RejectReason(Enum):
    """Why a snapshot never became a candidate record."""
    MISSING_NAME = "missing_name"
    NO_PRICE = "no_price"
    INVALID_PRICE = "invalid_price"
    MISSING_ID = "missing_id"
    OVERRIDDEN_INVALID = "overridden_invalid"
    INVALID_PRODUCT = "invalid_product"


@dataclass(frozen=True)
class DatedPrice:
    """A single price-history sample."""
    date: datetime
    price: float


@dataclass
class RawSnapshot:
    """Fields extracted from one product card, before any validation."""
    name: Optional[str] = None
    size: Optional[str] = None
    dollars: Optional[str] = None
    cents: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    source_site: Optional[str] = None


@dataclass
class ProductRecord:
    """Canonical catalog record, as persisted by the store."""
    id: str
    name: str
    size: Optional[str]
    current_price: float
    category: List[str]
    source_site: str
    price_history: List[DatedPrice]
    last_updated: datetime
    last_checked: datetime
    unit_price: Optional[float] = None
    unit_name: Optional[str] = None
    original_unit_quantity: Optional[float] = None

    def __post_init__(self):
        derived = (self.unit_price, self.unit_name, self.original_unit_quantity)
        present = [value is not None for value in derived]
        if any(present) and not all(present):
            raise ValueError(
                f"{self.id}: unit_price, unit_name and original_unit_quantity "
                f"must be set together (got {derived!r})"
            )

    @property
    def has_unit_price(self) -> bool:
        return self.unit_price is not None

    @property
    def unit_price_string(self) -> str:
        """Display form used in console rows, e.g. '$2.50 /kg'."""
        if not self.has_unit_price:
            return ""
        return f"${self.unit_price} /{self.unit_name}"


@dataclass(frozen=True)
class ReconciliationOutcome:
    """
    Result of reconciling one snapshot.

    `product` is the record to persist and is None only for REJECTED.
    `reason` and `detail` describe a rejection. `previous` is the stored
    record the engine compared against, kept for change reporting.
    """
    response: UpsertResponse
    product: Optional[ProductRecord] = None
    reason: Optional[RejectReason] = None
    detail: str = ""
    previous: Optional[ProductRecord] = None

    def __post_init__(self):
        if self.response == UpsertResponse.REJECTED:
            if self.product is not None or self.reason is None:
                raise ValueError("Rejected outcomes carry a reason and no product")
        elif self.product is None:
            raise ValueError(f"{self.response.value} outcome requires a product")

    @classmethod
    def rejected(cls, reason: RejectReason, detail: str = "") -> 'ReconciliationOutcome':
        return cls(response=UpsertResponse.REJECTED, reason=reason, detail=detail)

    @property
    def is_rejected(self) -> bool:
        return self.response == UpsertResponse.REJECTED
