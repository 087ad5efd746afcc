"""
Run statistics and alerts.

Counts reconciliation outcomes per page and per run, keeps alerts for
notable events (new products, price moves, category fixes, rejections,
store errors) and prints the end-of-run report.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from .models import ProductRecord, ReconciliationOutcome, RejectReason, UpsertResponse


logger = logging.getLogger(__name__)

# Percentage move that upgrades a price alert to "major"
MAJOR_PRICE_CHANGE_PCT = 30


class AlertType(Enum):
    """Types of alerts that can be raised during a run."""
    NEW_PRODUCT = "new_product"
    PRICE_INCREASE = "price_increase"
    PRICE_DECREASE = "price_decrease"
    PRICE_INCREASE_MAJOR = "price_increase_major"
    PRICE_DECREASE_MAJOR = "price_decrease_major"
    CATEGORY_CHANGED = "category_changed"
    PARSE_FAILURE = "parse_failure"
    MISSING_REQUIRED = "missing_required"
    OVERRIDE_EXCLUDED = "override_excluded"
    STORE_ERROR = "store_error"


class AlertSeverity(Enum):
    """Severity levels for alerts."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


ALERT_SEVERITY = {
    AlertType.NEW_PRODUCT: AlertSeverity.INFO,
    AlertType.PRICE_INCREASE: AlertSeverity.INFO,
    AlertType.PRICE_DECREASE: AlertSeverity.INFO,
    AlertType.PRICE_INCREASE_MAJOR: AlertSeverity.WARNING,
    AlertType.PRICE_DECREASE_MAJOR: AlertSeverity.WARNING,
    AlertType.CATEGORY_CHANGED: AlertSeverity.INFO,
    AlertType.PARSE_FAILURE: AlertSeverity.WARNING,
    AlertType.MISSING_REQUIRED: AlertSeverity.WARNING,
    AlertType.OVERRIDE_EXCLUDED: AlertSeverity.INFO,
    AlertType.STORE_ERROR: AlertSeverity.CRITICAL,
}

# Rejections surfaced as alerts; NO_PRICE is expected and only counted
REJECTION_ALERTS = {
    RejectReason.MISSING_NAME: AlertType.MISSING_REQUIRED,
    RejectReason.MISSING_ID: AlertType.MISSING_REQUIRED,
    RejectReason.INVALID_PRICE: AlertType.PARSE_FAILURE,
    RejectReason.INVALID_PRODUCT: AlertType.PARSE_FAILURE,
    RejectReason.OVERRIDDEN_INVALID: AlertType.OVERRIDE_EXCLUDED,
    RejectReason.NO_PRICE: None,
}


@dataclass
class Alert:
    """Individual alert record."""
    alert_type: AlertType
    severity: AlertSeverity
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    change_percent: Optional[float] = None
    message: str = ""


@dataclass
class PageStats:
    """Outcome counts for a single category page."""
    label: str = ""
    new: int = 0
    price_updated: int = 0
    info_updated: int = 0
    up_to_date: int = 0
    rejected: int = 0
    failed: int = 0

    def summary(self) -> str:
        return (
            f"{self.new} new products, {self.price_updated} prices updated, "
            f"{self.info_updated} info updated, {self.up_to_date} already up-to-date"
        )


def format_price_change(product: ProductRecord, new_price: float) -> str:
    """Console line for a price move, e.g. '  Price Up   : P5012345 | Milk 2L ... | $ 3.5 > $3.99'."""
    direction = "Up   : " if new_price > product.current_price else "Down : "
    return (
        "  Price " + direction
        + product.id + " | "
        + product.name[:47].ljust(47)
        + " | $" + str(product.current_price).rjust(4)
        + " > $" + str(new_price)
    )


def format_category_change(previous: ProductRecord, updated: ProductRecord) -> str:
    return (
        f"  Categories Changed: {updated.name.ljust(40)[:40]}"
        f" - {' '.join(previous.category)} > {' '.join(updated.category)}"
    )


class StatsTracker:
    """
    Track reconciliation statistics and alerts for reporting.
    Collects counts during a run, then prints a report at the end.
    """

    def __init__(self, source_site: str, upload: bool = True, max_products_limit: Optional[int] = None):
        self.source_site = source_site
        self.upload = upload
        self.max_products_limit = max_products_limit
        self.started_at = datetime.now()
        self.completed_at: Optional[datetime] = None

        # Run-wide counters
        self.snapshots_seen = 0
        self.products_new = 0
        self.prices_updated = 0
        self.info_updated = 0
        self.already_up_to_date = 0
        self.products_rejected = 0
        self.products_without_price = 0
        self.products_failed = 0

        self.pages: List[PageStats] = []
        self.alerts: List[Alert] = []

        # Every UpsertResponse must have a handler
        self._handlers: Dict[UpsertResponse, Callable[[ReconciliationOutcome], None]] = {
            UpsertResponse.NEW: self._record_new,
            UpsertResponse.PRICE_CHANGED: self._record_price_changed,
            UpsertResponse.INFO_CHANGED: self._record_info_changed,
            UpsertResponse.ALREADY_UP_TO_DATE: self._record_up_to_date,
            UpsertResponse.REJECTED: self._record_rejected,
        }

    @property
    def current_page(self) -> PageStats:
        if not self.pages:
            self.pages.append(PageStats())
        return self.pages[-1]

    def start_page(self, label: str) -> PageStats:
        """Begin counting a new page."""
        page = PageStats(label=label)
        self.pages.append(page)
        return page

    def record_outcome(self, outcome: ReconciliationOutcome):
        """Count an outcome against the current page and the run."""
        self.snapshots_seen += 1
        self._handlers[outcome.response](outcome)

    def _record_new(self, outcome: ReconciliationOutcome):
        product = outcome.product
        self.products_new += 1
        self.current_page.new += 1
        self.alerts.append(Alert(
            alert_type=AlertType.NEW_PRODUCT,
            severity=ALERT_SEVERITY[AlertType.NEW_PRODUCT],
            product_id=product.id,
            product_name=product.name,
            new_value=f"${product.current_price:.2f}",
            message=f"New product: {product.name}"
        ))

    def _record_price_changed(self, outcome: ReconciliationOutcome):
        self.prices_updated += 1
        self.current_page.price_updated += 1
        if outcome.previous is not None:
            logger.info(format_price_change(outcome.previous, outcome.product.current_price))
            self.record_price_change(outcome.previous, outcome.product.current_price)

    def _record_info_changed(self, outcome: ReconciliationOutcome):
        self.info_updated += 1
        self.current_page.info_updated += 1
        previous, product = outcome.previous, outcome.product
        if previous is not None:
            logger.info(format_category_change(previous, product))
            self.alerts.append(Alert(
                alert_type=AlertType.CATEGORY_CHANGED,
                severity=ALERT_SEVERITY[AlertType.CATEGORY_CHANGED],
                product_id=product.id,
                product_name=product.name,
                old_value=", ".join(previous.category),
                new_value=", ".join(product.category),
                message=f"Categories changed: {product.name}"
            ))

    def _record_up_to_date(self, outcome: ReconciliationOutcome):
        self.already_up_to_date += 1
        self.current_page.up_to_date += 1

    def _record_rejected(self, outcome: ReconciliationOutcome):
        self.products_rejected += 1
        self.current_page.rejected += 1
        if outcome.reason == RejectReason.NO_PRICE:
            self.products_without_price += 1

        alert_type = REJECTION_ALERTS.get(outcome.reason)
        if alert_type is None:
            return
        self.alerts.append(Alert(
            alert_type=alert_type,
            severity=ALERT_SEVERITY[alert_type],
            message=f"{outcome.reason.value}: {outcome.detail}"[:120]
        ))

    def record_price_change(self, previous: ProductRecord, new_price: float):
        """Record a price move; moves of 30% or more become major alerts."""
        old_price = previous.current_price
        if old_price <= 0:
            return

        change_pct = ((new_price - old_price) / old_price) * 100
        if change_pct >= 0:
            alert_type = (AlertType.PRICE_INCREASE_MAJOR if change_pct >= MAJOR_PRICE_CHANGE_PCT
                          else AlertType.PRICE_INCREASE)
            verb = "increased"
        else:
            alert_type = (AlertType.PRICE_DECREASE_MAJOR if change_pct <= -MAJOR_PRICE_CHANGE_PCT
                          else AlertType.PRICE_DECREASE)
            verb = "dropped"

        self.alerts.append(Alert(
            alert_type=alert_type,
            severity=ALERT_SEVERITY[alert_type],
            product_id=previous.id,
            product_name=previous.name,
            old_value=f"${old_price:.2f}",
            new_value=f"${new_price:.2f}",
            change_percent=change_pct,
            message=f"Price {verb} {change_pct:.1f}%: ${old_price:.2f} → ${new_price:.2f}"
        ))

    def record_failure(self, product_id: Optional[str], error_msg: str):
        """Record a store error for one product."""
        self.products_failed += 1
        self.current_page.failed += 1
        self.alerts.append(Alert(
            alert_type=AlertType.STORE_ERROR,
            severity=ALERT_SEVERITY[AlertType.STORE_ERROR],
            product_id=product_id,
            message=f"[STORE] {product_id or 'unknown'}: {error_msg}"
        ))

    def get_alert_counts(self) -> Dict[str, int]:
        """Get counts of each alert type."""
        counts: Dict[str, int] = {}
        for alert in self.alerts:
            key = alert.alert_type.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    def get_alerts_by_type(self, alert_type: AlertType) -> List[Alert]:
        """Get all alerts of a specific type."""
        return [a for a in self.alerts if a.alert_type == alert_type]

    def print_report(self):
        """Print the final run statistics report to console."""
        self.completed_at = datetime.now()
        duration = self.completed_at - self.started_at
        duration_str = str(timedelta(seconds=int(duration.total_seconds())))

        print("\n" + "=" * 70)
        print("RECONCILIATION REPORT")
        print("=" * 70)
        print(f"\nSource Site: {self.source_site}")
        print(f"Run Duration: {duration_str}")
        print(f"Mode: {'Upload' if self.upload else 'Dry Run'}")
        if self.max_products_limit:
            print(f"Max Products Limit: {self.max_products_limit}")

        print("\n--- SNAPSHOTS ---")
        print(f"  Seen:          {self.snapshots_seen:>6}")
        print(f"  Rejected:      {self.products_rejected:>6}")
        print(f"    No price:    {self.products_without_price:>6}")
        print(f"  Failed:        {self.products_failed:>6}")

        print("\n--- PRODUCTS ---")
        print(f"  New:           {self.products_new:>6}")
        print(f"  Price Updated: {self.prices_updated:>6}")
        print(f"  Info Updated:  {self.info_updated:>6}")
        print(f"  Up-to-date:    {self.already_up_to_date:>6}")

        alert_counts = self.get_alert_counts()
        if alert_counts:
            print("\n--- ALERTS ---")
            for alert_type, count in sorted(alert_counts.items()):
                print(f"  {alert_type:<25} {count:>6}")

        price_decreases = self.get_alerts_by_type(AlertType.PRICE_DECREASE_MAJOR)
        price_increases = self.get_alerts_by_type(AlertType.PRICE_INCREASE_MAJOR)
        if price_decreases or price_increases:
            print(f"\n--- MAJOR PRICE CHANGES (>{MAJOR_PRICE_CHANGE_PCT}%) ---")
            for alert in price_decreases[:10]:
                name = (alert.product_name or alert.product_id or "Unknown")[:35]
                print(f"  ▼ {name:<35} {alert.change_percent:>+6.1f}%: {alert.old_value} → {alert.new_value}")
            for alert in price_increases[:10]:
                name = (alert.product_name or alert.product_id or "Unknown")[:35]
                print(f"  ▲ {name:<35} {alert.change_percent:>+6.1f}%: {alert.old_value} → {alert.new_value}")

        failures = self.get_alerts_by_type(AlertType.STORE_ERROR)
        if failures:
            print("\n--- FAILURES ---")
            for alert in failures[:10]:
                print(f"  {alert.message}")
            if len(failures) > 10:
                print(f"  ... ({len(failures)} total)")

        print("\n" + "=" * 70)
