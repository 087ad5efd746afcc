"""
Append-only price history attached to every catalog record.

Samples are kept in ascending date order. Nothing here rewrites or removes a
sample; helpers return new lists so stored records are never modified.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .models import DatedPrice


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 (or 'YYYY-MM-DD HH:MM:SS') timestamp into UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(text))


def new_history(observed_at: datetime, price: float) -> List[DatedPrice]:
    """History for a freshly scraped record: a single sample."""
    return [DatedPrice(date=observed_at, price=price)]


def latest_sample(history: Sequence[DatedPrice]) -> Optional[DatedPrice]:
    return history[-1] if history else None


def can_append(history: Sequence[DatedPrice], date: datetime) -> bool:
    """True if a sample dated `date` keeps the history in date order."""
    latest = latest_sample(history)
    return latest is None or date >= latest.date


def append_sample(history: Sequence[DatedPrice], sample: DatedPrice) -> List[DatedPrice]:
    """
    Return a new history with `sample` pushed to the end.

    Raises:
        ValueError: if the sample is older than the newest existing sample.
    """
    if not can_append(history, sample.date):
        raise ValueError(
            f"Price sample dated {sample.date.isoformat()} is older than "
            f"latest sample {history[-1].date.isoformat()}"
        )
    return list(history) + [sample]


def history_to_list(history: Sequence[DatedPrice]) -> List[dict]:
    return [{'date': s.date.isoformat(), 'price': s.price} for s in history]


def history_to_json(history: Sequence[DatedPrice]) -> str:
    return json.dumps(history_to_list(history))


def history_from_json(data) -> List[DatedPrice]:
    """Decode a history stored as a JSON string or an already-parsed list."""
    if data is None or data == '':
        return []
    items = json.loads(data) if isinstance(data, str) else data
    return [
        DatedPrice(date=parse_timestamp(item['date']), price=float(item['price']))
        for item in items
    ]
