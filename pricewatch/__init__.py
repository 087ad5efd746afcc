"""
Pricewatch - supermarket catalog reconciliation.

Normalizes scraped product snapshots, derives unit prices, applies operator
overrides and reconciles each snapshot against the stored catalog while
keeping an append-only price history per product.
"""

from .models import (
    DatedPrice,
    ProductRecord,
    RawSnapshot,
    ReconciliationOutcome,
    RejectReason,
    UpsertResponse,
)
from .normalizer import SnapshotRejected, normalize_snapshot
from .overrides import Override, OverrideTable, load_overrides
from .reconciler import process_snapshot, reconcile
from .size_parser import parse_size

__all__ = [
    'DatedPrice',
    'ProductRecord',
    'RawSnapshot',
    'ReconciliationOutcome',
    'RejectReason',
    'UpsertResponse',
    'SnapshotRejected',
    'normalize_snapshot',
    'Override',
    'OverrideTable',
    'load_overrides',
    'process_snapshot',
    'reconcile',
    'parse_size',
]

__version__ = '0.1.0'
