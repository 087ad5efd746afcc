"""
Frappe REST client for the catalog.

Stores ProductRecords as documents of a Frappe DocType (default
"Product Item") through the resource API. Provides the same lookup/persist
seam as the SQL store so the importer can use either.
"""

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from .config import FrappeSettings
from .models import ProductRecord, ReconciliationOutcome
from .price_history import ensure_utc, history_from_json, history_to_json, parse_timestamp


logger = logging.getLogger(__name__)

MYSQL_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
REQUEST_TIMEOUT = 15


class FrappeError(RuntimeError):
    """Raised when the Frappe API rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def format_mysql_datetime(value: datetime) -> str:
    """UTC 'YYYY-MM-DD HH:MM:SS', the format Frappe datetime fields accept."""
    return ensure_utc(value).strftime(MYSQL_DATETIME_FORMAT)


def to_frappe_payload(product: ProductRecord) -> Dict:
    """Map a record onto the Product Item document fields."""
    return {
        'product_id': product.id,
        'productname': product.name,
        'category': ", ".join(product.category),
        'source_site': product.source_site,
        'size': product.size,
        'current_price': round(product.current_price, 2),
        'unit_price': round(product.unit_price, 2) if product.has_unit_price else None,
        'unit_name': product.unit_name,
        'original_unit_quantity': product.original_unit_quantity,
        'price_history': history_to_json(product.price_history) if product.price_history else '',
        'last_updated': format_mysql_datetime(product.last_updated),
        'last_checked': format_mysql_datetime(product.last_checked),
    }


def _split_categories(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(c).strip() for c in value if str(c).strip()]
    return [c.strip() for c in str(value).split(',') if c.strip()]


def from_frappe_doc(doc: Dict) -> ProductRecord:
    """Rebuild a record from a Product Item document."""
    unit_fields = (doc.get('unit_price'), doc.get('unit_name'), doc.get('original_unit_quantity'))
    has_unit = all(v not in (None, '', 0) for v in unit_fields)

    return ProductRecord(
        id=doc['product_id'],
        name=doc['productname'],
        size=doc.get('size') or None,
        current_price=float(doc.get('current_price') or 0),
        category=_split_categories(doc.get('category')),
        source_site=doc['source_site'],
        price_history=history_from_json(doc.get('price_history')),
        last_updated=parse_timestamp(doc['last_updated']),
        last_checked=parse_timestamp(doc['last_checked']),
        unit_price=float(unit_fields[0]) if has_unit else None,
        unit_name=unit_fields[1] if has_unit else None,
        original_unit_quantity=float(unit_fields[2]) if has_unit else None,
    )


class FrappeClient:
    """
    Client for the Frappe resource API.

    Uses token authentication with the configured API key and secret.
    """

    def __init__(self, settings: FrappeSettings, session: Optional[requests.Session] = None):
        self.url = settings.url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'token {settings.api_key}:{settings.api_secret}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    def _request(self, method: str, url: str, **kwargs) -> Dict:
        try:
            response = self.session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FrappeError(f"Frappe {method} failed ({status}): {e}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise FrappeError(f"Frappe {method} failed: {e}") from e

    def find_product(self, source_site: str, product_id: str) -> Optional[Dict]:
        """Return the raw document for (source_site, product_id), or None."""
        filters = [["product_id", "=", product_id], ["source_site", "=", source_site]]
        result = self._request('GET', self.url, params={
            'filters': json.dumps(filters),
            'fields': json.dumps(["*"]),
            'limit_page_length': 1,
        })
        docs = result.get('data') or []
        return docs[0] if docs else None

    def get_stored_product(self, source_site: str, product_id: str) -> Optional[ProductRecord]:
        doc = self.find_product(source_site, product_id)
        return from_frappe_doc(doc) if doc else None

    def create_product(self, product: ProductRecord) -> Dict:
        result = self._request('POST', self.url, json={'data': to_frappe_payload(product)})
        logger.info("New Product: %s | $ %s", product.name[:47].ljust(47), product.current_price)
        return result

    def update_product(self, docname: str, product: ProductRecord) -> Dict:
        return self._request('PUT', f"{self.url}/{quote(docname)}",
                             json={'data': to_frappe_payload(product)})

    def upsert_outcome(self, outcome: ReconciliationOutcome) -> bool:
        """
        Persist a non-rejected outcome, updating the existing document when
        one is found and creating it otherwise.

        Returns:
            True if a document was written, False for rejected outcomes.
        """
        if outcome.is_rejected:
            return False

        product = outcome.product
        doc = self.find_product(product.source_site, product.id)
        if doc is None:
            self.create_product(product)
            return True

        try:
            self.update_product(doc['name'], product)
        except FrappeError as e:
            # Document vanished between lookup and update
            if e.status_code != 404:
                raise
            self.create_product(product)
        return True
