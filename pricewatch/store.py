"""
Relational catalog store.

Persists ProductRecords to PostgreSQL when DATABASE_URL is configured and
psycopg2 is installed, otherwise to a local SQLite file. Records are keyed by
(source_site, product_id); category and price history are stored as JSON
text and timestamps as ISO-8601 UTC strings.

Callers own the read-reconcile-write cycle and the commit; a single worker
per source site is assumed, so no row locking is done here.
"""

import json
import logging
from typing import Dict, Optional, Union

# Database support - PostgreSQL or SQLite fallback
import sqlite3
try:
    import psycopg2
    HAS_POSTGRES = True
except ImportError:
    HAS_POSTGRES = False

from .config import DEFAULT_SQLITE_PATH, get_database_url
from .models import ProductRecord, ReconciliationOutcome, UpsertResponse
from .price_history import history_from_json, history_to_json, parse_timestamp
from .reconciler import StoredLookup


logger = logging.getLogger(__name__)

DbConnection = Union['psycopg2.extensions.connection', sqlite3.Connection]

PRODUCT_COLUMNS = (
    'source_site', 'product_id', 'name', 'size', 'current_price', 'category',
    'price_history', 'last_updated', 'last_checked', 'unit_price', 'unit_name',
    'original_unit_quantity',
)

SQLITE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS products (
        source_site TEXT NOT NULL,
        product_id TEXT NOT NULL,
        name TEXT NOT NULL,
        size TEXT,
        current_price REAL NOT NULL,
        category TEXT NOT NULL,
        price_history TEXT NOT NULL,
        last_updated TEXT NOT NULL,
        last_checked TEXT NOT NULL,
        unit_price REAL,
        unit_name TEXT,
        original_unit_quantity REAL,
        PRIMARY KEY (source_site, product_id)
    )
'''

POSTGRES_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS products (
        source_site TEXT NOT NULL,
        product_id TEXT NOT NULL,
        name TEXT NOT NULL,
        size TEXT,
        current_price DOUBLE PRECISION NOT NULL,
        category TEXT NOT NULL,
        price_history TEXT NOT NULL,
        last_updated TEXT NOT NULL,
        last_checked TEXT NOT NULL,
        unit_price DOUBLE PRECISION,
        unit_name TEXT,
        original_unit_quantity DOUBLE PRECISION,
        PRIMARY KEY (source_site, product_id)
    )
'''


def is_postgres(conn) -> bool:
    """Check if connection is PostgreSQL."""
    return HAS_POSTGRES and hasattr(conn, 'info')


def db_placeholder(conn) -> str:
    """Return the correct placeholder for the database type."""
    return '%s' if is_postgres(conn) else '?'


def init_database(sqlite_path: str = None) -> DbConnection:
    """
    Open the catalog database, creating the schema if needed.
    Uses PostgreSQL if available, falls back to SQLite.
    """
    postgres_url = get_database_url()
    if HAS_POSTGRES and postgres_url:
        return init_postgres_database(postgres_url)
    if not HAS_POSTGRES:
        logger.info("psycopg2 not installed, using SQLite")
    elif not postgres_url:
        logger.info("DATABASE_URL not set, using SQLite")
    return init_sqlite_database(sqlite_path or DEFAULT_SQLITE_PATH)


def init_postgres_database(db_url: str):
    """Initialize PostgreSQL database with schema."""
    conn = psycopg2.connect(db_url)
    conn.autocommit = False
    create_schema(conn)
    logger.info("PostgreSQL catalog initialized")
    return conn


def init_sqlite_database(db_path: str) -> sqlite3.Connection:
    """Initialize SQLite database with schema (fallback)."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    logger.info("SQLite catalog initialized: %s", db_path)
    return conn


def create_schema(conn) -> None:
    cursor = conn.cursor()
    cursor.execute(POSTGRES_SCHEMA if is_postgres(conn) else SQLITE_SCHEMA)
    conn.commit()


def product_to_row(product: ProductRecord) -> Dict:
    return {
        'source_site': product.source_site,
        'product_id': product.id,
        'name': product.name,
        'size': product.size,
        'current_price': product.current_price,
        'category': json.dumps(product.category),
        'price_history': history_to_json(product.price_history),
        'last_updated': product.last_updated.isoformat(),
        'last_checked': product.last_checked.isoformat(),
        'unit_price': product.unit_price,
        'unit_name': product.unit_name,
        'original_unit_quantity': product.original_unit_quantity,
    }


def row_to_product(row: Dict) -> ProductRecord:
    return ProductRecord(
        id=row['product_id'],
        name=row['name'],
        size=row['size'],
        current_price=float(row['current_price']),
        category=json.loads(row['category']) if row['category'] else [],
        source_site=row['source_site'],
        price_history=history_from_json(row['price_history']),
        last_updated=parse_timestamp(row['last_updated']),
        last_checked=parse_timestamp(row['last_checked']),
        unit_price=row['unit_price'],
        unit_name=row['unit_name'],
        original_unit_quantity=row['original_unit_quantity'],
    )


def get_stored_product(conn, source_site: str, product_id: str) -> Optional[ProductRecord]:
    """Look up the stored record for (source_site, product_id)."""
    ph = db_placeholder(conn)
    cursor = conn.cursor()
    cursor.execute(f'''
        SELECT {", ".join(PRODUCT_COLUMNS)}
        FROM products
        WHERE source_site = {ph} AND product_id = {ph}
    ''', (source_site, product_id))
    row = cursor.fetchone()
    if row is None:
        return None
    columns = [d[0] for d in cursor.description]
    return row_to_product(dict(zip(columns, row)))


def save_product(conn, product: ProductRecord) -> None:
    """Insert or replace the full record."""
    ph = db_placeholder(conn)
    row = product_to_row(product)
    updates = ", ".join(
        f"{col} = excluded.{col}" for col in PRODUCT_COLUMNS if col not in ('source_site', 'product_id')
    )
    cursor = conn.cursor()
    cursor.execute(f'''
        INSERT INTO products ({", ".join(PRODUCT_COLUMNS)})
        VALUES ({", ".join([ph] * len(PRODUCT_COLUMNS))})
        ON CONFLICT (source_site, product_id) DO UPDATE SET {updates}
    ''', tuple(row[col] for col in PRODUCT_COLUMNS))


def touch_last_checked(conn, product: ProductRecord) -> None:
    """Advance last_checked only; every other column keeps its stored value."""
    ph = db_placeholder(conn)
    cursor = conn.cursor()
    cursor.execute(f'''
        UPDATE products SET last_checked = {ph}
        WHERE source_site = {ph} AND product_id = {ph}
    ''', (product.last_checked.isoformat(), product.source_site, product.id))


# Every UpsertResponse must have an entry; None means nothing is written
OUTCOME_WRITERS = {
    UpsertResponse.NEW: save_product,
    UpsertResponse.PRICE_CHANGED: save_product,
    UpsertResponse.INFO_CHANGED: save_product,
    UpsertResponse.ALREADY_UP_TO_DATE: touch_last_checked,
    UpsertResponse.REJECTED: None,
}


def apply_outcome(conn, outcome: ReconciliationOutcome) -> bool:
    """
    Persist a reconciliation outcome. Does not commit.

    Returns:
        True if a row was written, False for rejected outcomes.
    """
    writer = OUTCOME_WRITERS[outcome.response]
    if writer is None:
        return False
    writer(conn, outcome.product)
    return True


def make_lookup(conn) -> StoredLookup:
    """Stored-record lookup bound to a connection, for process_snapshot."""
    def lookup(source_site: str, product_id: str) -> Optional[ProductRecord]:
        return get_stored_product(conn, source_site, product_id)
    return lookup


def count_products(conn, source_site: Optional[str] = None) -> int:
    """Number of stored products, optionally for one source site."""
    cursor = conn.cursor()
    if source_site is None:
        cursor.execute('SELECT COUNT(*) FROM products')
    else:
        ph = db_placeholder(conn)
        cursor.execute(f'SELECT COUNT(*) FROM products WHERE source_site = {ph}', (source_site,))
    return cursor.fetchone()[0]
