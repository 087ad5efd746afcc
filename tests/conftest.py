"""
Pytest fixtures and helpers for catalog reconciliation tests.
"""
import pytest
import sqlite3
import os
import sys
from datetime import datetime, timezone

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pricewatch.models import DatedPrice, ProductRecord, RawSnapshot


IMAGE_URL = 'https://a.fsimg.co.nz/product/retail/fan/image/400x400/{}.png'


def utc(year=2024, month=3, day=1, hour=9, minute=0, second=0):
    """Timezone-aware UTC datetime."""
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite catalog for isolated testing."""
    from pricewatch.store import create_schema

    conn = sqlite3.connect(':memory:')
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def postgres_conn():
    """Test PostgreSQL connection (requires TEST_DATABASE_URL env var)."""
    import psycopg2
    from pricewatch.store import create_schema

    url = os.environ.get('TEST_DATABASE_URL')
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")
    conn = psycopg2.connect(url)
    create_schema(conn)
    yield conn
    conn.rollback()  # Don't persist test data
    conn.close()


def make_snapshot(name='Anchor Blue Milk', size='2l', dollars='4', cents='29',
                  categories=None, image_id='5012345', image_url=None, source_site=None):
    """Build a RawSnapshot with sensible defaults."""
    return RawSnapshot(
        name=name,
        size=size,
        dollars=dollars,
        cents=cents,
        categories=['milk'] if categories is None else categories,
        image_url=image_url if image_url is not None else IMAGE_URL.format(image_id),
        source_site=source_site,
    )


def make_record(product_id='P5012345', name='Anchor Blue Milk', size='2L', price=4.29,
                category=None, observed=None, history=None, source_site='paknsave.co.nz',
                unit=(2.15, 'L', 2.0)):
    """Build a stored ProductRecord; pass unit=None for no unit price."""
    observed = observed or utc()
    if history is None:
        history = [DatedPrice(date=observed, price=price)]
    unit_price, unit_name, quantity = unit if unit else (None, None, None)
    return ProductRecord(
        id=product_id,
        name=name,
        size=size,
        current_price=price,
        category=['milk'] if category is None else category,
        source_site=source_site,
        price_history=history,
        last_updated=observed,
        last_checked=observed,
        unit_price=unit_price,
        unit_name=unit_name,
        original_unit_quantity=quantity,
    )
