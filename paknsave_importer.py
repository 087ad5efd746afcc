#!/usr/bin/env python3
"""
Pak'nSave Catalog Importer

Reconciles scraped product snapshots (CSV or JSON exported by the page
scraper) against the stored catalog. In dry-run mode each accepted product is
printed as a table row; with --db every outcome is written to the SQL or
Frappe store and per-page statistics are reported.
"""

import argparse
import logging
import math
import numbers
import os
import sys
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from pricewatch.config import ConfigError, FrappeSettings, RunConfig, load_environment
from pricewatch.frappe_client import FrappeClient
from pricewatch.models import ProductRecord, RawSnapshot, ReconciliationOutcome
from pricewatch.normalizer import derive_product_id
from pricewatch.overrides import OverrideFileError, OverrideTable, load_overrides
from pricewatch.reconciler import StoredLookup, process_snapshot
from pricewatch.stats import StatsTracker
from pricewatch.store import apply_outcome, init_database, make_lookup


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

REQUIRED_COLUMNS = ['name', 'size', 'dollars', 'cents', 'category', 'image_url']

# Separator for multiple category hints in one cell
CATEGORY_SEPARATOR = ';'

OUTPUT_DIR = "output"

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


# =============================================================================
# Snapshot Input
# =============================================================================

def _text(value) -> Optional[str]:
    """Cell value as stripped text, or None for blanks and NaN."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def _price_part(value, width: int = 1) -> Optional[str]:
    """
    Price cell as digit text. Whole numbers from JSON (or float columns
    widened by a null elsewhere) are written without a decimal point, and
    cents are zero-padded so 5 reads as '05'.
    """
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return None
        if float(value).is_integer():
            return str(int(value)).zfill(width)
    return _text(value)


def read_snapshots(path: str) -> pd.DataFrame:
    """
    Load scraped snapshots from a CSV or JSON file.

    CSV columns are read as text so price parts like '05' keep their digits;
    numeric JSON price cells are converted back to digit text per row.

    Raises:
        ValueError: if the file lacks a required column.
    """
    if path.lower().endswith('.json'):
        df = pd.read_json(path, orient='records', dtype=False)
        df = df.astype(object).where(df.notna(), None)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")
    return df


def row_to_snapshot(row: Dict) -> RawSnapshot:
    """Convert one input row into a RawSnapshot."""
    category_text = _text(row.get('category')) or ""
    return RawSnapshot(
        name=_text(row.get('name')),
        size=_text(row.get('size')),
        dollars=_price_part(row.get('dollars')),
        cents=_price_part(row.get('cents'), width=2),
        categories=[c for c in category_text.split(CATEGORY_SEPARATOR) if c.strip()],
        image_url=_text(row.get('image_url')),
        source_site=_text(row.get('source_site')),
    )


def iter_pages(df: pd.DataFrame, default_label: str) -> Iterator[Tuple[str, List[Dict]]]:
    """Yield (page label, rows) in file order, grouping on the 'page' column if present."""
    if 'page' not in df.columns:
        yield default_label, df.to_dict('records')
        return
    for label, group in df.groupby('page', sort=False):
        yield str(label), group.to_dict('records')


# =============================================================================
# Output
# =============================================================================

def format_product_row(product: ProductRecord) -> str:
    """Dry-run table row: id | name | size | price | unit price."""
    return (
        product.id.rjust(9) + " | "
        + product.name.ljust(60)[:60] + " | "
        + (product.size or "").ljust(10) + " | $"
        + str(product.current_price).rjust(5) + " | "
        + product.unit_price_string
    )


def save_to_csv(products: List[ProductRecord], output_dir: str = OUTPUT_DIR) -> str:
    """Save reconciled records to a timestamped CSV file."""
    if not products:
        print("No products to save", flush=True)
        return ""

    os.makedirs(output_dir, exist_ok=True)
    df = pd.DataFrame([{
        'id': p.id,
        'name': p.name,
        'size': p.size,
        'current_price': p.current_price,
        'category': ", ".join(p.category),
        'source_site': p.source_site,
        'unit_price': p.unit_price,
        'unit_name': p.unit_name,
        'original_unit_quantity': p.original_unit_quantity,
        'price_samples': len(p.price_history),
        'last_updated': p.last_updated.isoformat(),
        'last_checked': p.last_checked.isoformat(),
    } for p in products])

    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    filepath = os.path.join(output_dir, f"catalog_{timestamp}.csv")
    df.to_csv(filepath, index=False)
    print(f"\nSaved {len(products)} rows to: {filepath}", flush=True)
    return filepath


# =============================================================================
# Import
# =============================================================================

def _no_stored_record(source_site: str, product_id: str) -> Optional[ProductRecord]:
    return None


def import_snapshots(df: pd.DataFrame, config: RunConfig, overrides: OverrideTable,
                     stats: StatsTracker,
                     lookup: Optional[StoredLookup] = None,
                     persist: Optional[Callable[[ReconciliationOutcome], bool]] = None,
                     commit: Optional[Callable[[], None]] = None,
                     observed_at: Optional[datetime] = None,
                     page_label: str = "snapshots") -> List[ProductRecord]:
    """
    Reconcile every snapshot in `df`, one page at a time.

    In dry-run mode nothing is looked up or persisted and each accepted
    product is printed. Store errors for a single product are recorded and
    the run carries on.

    Returns:
        Records produced by non-rejected outcomes, in input order.
    """
    observed_at = observed_at or datetime.now(timezone.utc)
    lookup = lookup if config.upload and lookup else _no_stored_record
    delay = config.product_delay_ms / 1000

    results: List[ProductRecord] = []
    processed = 0

    for label, rows in iter_pages(df, page_label):
        if config.max_products and processed >= config.max_products:
            break
        page = stats.start_page(label)
        print(f"\n[{len(stats.pages)}] {label} - {len(rows)} snapshots", flush=True)

        for row in rows:
            if config.max_products and processed >= config.max_products:
                break
            processed += 1
            snapshot = row_to_snapshot(row)

            try:
                outcome = process_snapshot(
                    snapshot, lookup, overrides,
                    observed_at=observed_at,
                    source_site=config.source_site,
                    id_prefix=config.id_prefix,
                )
                if config.upload and persist is not None:
                    persist(outcome)
            except Exception as e:
                logger.error("Store error for %s: %s", snapshot.name, e)
                product_id = derive_product_id(snapshot.image_url, config.id_prefix)
                stats.record_failure(product_id, str(e))
                continue

            stats.record_outcome(outcome)
            if outcome.is_rejected:
                continue
            results.append(outcome.product)

            if config.dry_run:
                print(format_product_row(outcome.product), flush=True)
                if delay:
                    time.sleep(delay)

        if config.upload:
            if commit is not None:
                commit()
            print(f"  Catalog: {page.summary()}", flush=True)

    return results


def open_store(config: RunConfig):
    """
    Open the configured catalog store.

    Returns:
        (lookup, persist, commit, close) callables for import_snapshots.
    """
    if config.store == 'frappe':
        client = FrappeClient(FrappeSettings.from_env())
        return client.get_stored_product, client.upsert_outcome, None, client.session.close

    conn = init_database(config.sqlite_path)
    return (
        make_lookup(conn),
        lambda outcome: apply_outcome(conn, outcome),
        conn.commit,
        conn.close,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Reconcile scraped Pak'nSave snapshots against the product catalog"
    )
    parser.add_argument('snapshots', nargs='+',
                        help='CSV or JSON files of scraped snapshots')
    parser.add_argument('--db', action='store_true',
                        help='Write outcomes to the catalog store (default is a dry run)')
    parser.add_argument('--store', choices=['sql', 'frappe'], default=None,
                        help='Catalog store to use with --db (default: sql)')
    parser.add_argument('--overrides', default=None,
                        help='JSON file of per-product size/category overrides')
    parser.add_argument('--source-site', default=None,
                        help='Source site for snapshots that do not name one')
    parser.add_argument('--max-products', type=int, default=None,
                        help='Maximum snapshots to process (for testing)')
    parser.add_argument('--product-delay-ms', type=int, default=None,
                        help='Delay between dry-run rows in milliseconds')
    parser.add_argument('--export', action='store_true',
                        help='Save reconciled records to a timestamped CSV')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    load_environment()

    try:
        config = RunConfig.from_env(
            upload=args.db,
            store=args.store,
            overrides_file=args.overrides,
            source_site=args.source_site,
            max_products=args.max_products,
            product_delay_ms=args.product_delay_ms,
        )
        overrides = load_overrides(config.overrides_file)
    except (ConfigError, OverrideFileError) as e:
        print(f"Configuration error: {e}", flush=True)
        return 1

    print("=" * 60, flush=True)
    print("Pak'nSave Catalog Importer", flush=True)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", flush=True)
    if config.store_name:
        print(f"Store: {config.store_name}", flush=True)
    print(f"Mode: {'Upload to ' + config.store.upper() if config.upload else 'Dry Run'}", flush=True)
    print("=" * 60, flush=True)

    lookup = persist = commit = close = None
    if config.upload:
        try:
            lookup, persist, commit, close = open_store(config)
        except ConfigError as e:
            print(f"Configuration error: {e}", flush=True)
            return 1

    stats = StatsTracker(config.source_site, upload=config.upload,
                         max_products_limit=config.max_products)
    all_products: List[ProductRecord] = []

    try:
        for path in args.snapshots:
            try:
                df = read_snapshots(path)
            except (OSError, ValueError) as e:
                print(f"Could not read {path}: {e}", flush=True)
                return 1

            all_products.extend(import_snapshots(
                df, config, overrides, stats,
                lookup=lookup, persist=persist, commit=commit,
                page_label=os.path.basename(path),
            ))
    finally:
        if close is not None:
            close()

    stats.print_report()

    if args.export:
        save_to_csv(all_products)

    return 0


if __name__ == '__main__':
    sys.exit(main())
