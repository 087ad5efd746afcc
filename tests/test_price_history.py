"""
Tests for the append-only price history helpers.
"""
import pytest
from datetime import datetime, timedelta, timezone

from conftest import utc


class TestAppendSample:
    """Appending samples."""

    def test_append_returns_new_list(self):
        """The original history is left untouched."""
        from pricewatch.models import DatedPrice
        from pricewatch.price_history import append_sample

        history = [DatedPrice(utc(2024, 3, 1), 3.50)]
        extended = append_sample(history, DatedPrice(utc(2024, 3, 2), 3.99))

        assert len(history) == 1
        assert [s.price for s in extended] == [3.50, 3.99]

    def test_same_date_allowed(self):
        """Non-decreasing order permits equal dates."""
        from pricewatch.models import DatedPrice
        from pricewatch.price_history import append_sample

        history = [DatedPrice(utc(2024, 3, 1), 3.50)]
        extended = append_sample(history, DatedPrice(utc(2024, 3, 1), 3.99))
        assert len(extended) == 2

    def test_older_sample_refused(self):
        """Samples cannot be inserted out of order."""
        from pricewatch.models import DatedPrice
        from pricewatch.price_history import append_sample

        history = [DatedPrice(utc(2024, 3, 5), 3.50)]
        with pytest.raises(ValueError):
            append_sample(history, DatedPrice(utc(2024, 3, 1), 3.99))

    def test_append_to_empty(self):
        """An empty history accepts any sample."""
        from pricewatch.models import DatedPrice
        from pricewatch.price_history import append_sample, latest_sample

        extended = append_sample([], DatedPrice(utc(), 1.00))
        assert latest_sample(extended).price == 1.00
        assert latest_sample([]) is None


class TestHistorySerialization:
    """JSON encoding used by the stores."""

    def test_json_round_trip(self):
        """Dates come back as aware UTC datetimes."""
        from pricewatch.models import DatedPrice
        from pricewatch.price_history import history_from_json, history_to_json

        history = [DatedPrice(utc(2024, 3, 1, 9), 3.5), DatedPrice(utc(2024, 3, 2, 10), 3.99)]
        assert history_from_json(history_to_json(history)) == history

    def test_decode_mysql_and_zulu_formats(self):
        """Frappe style and JavaScript style timestamps are both accepted."""
        from pricewatch.price_history import history_from_json

        decoded = history_from_json(
            '[{"date": "2024-03-01 09:00:00", "price": 3.5},'
            ' {"date": "2024-03-02T10:00:00.000Z", "price": "3.99"}]'
        )
        assert decoded[0].date == utc(2024, 3, 1, 9)
        assert decoded[1].date == utc(2024, 3, 2, 10)
        assert decoded[1].price == 3.99

    def test_empty_values(self):
        """Blank stored histories decode to an empty list."""
        from pricewatch.price_history import history_from_json

        assert history_from_json(None) == []
        assert history_from_json('') == []
        assert history_from_json('[]') == []


class TestTimestamps:
    """UTC timestamp helpers."""

    def test_parse_timestamp_offset(self):
        """Offsets are converted to UTC."""
        from pricewatch.price_history import parse_timestamp

        assert parse_timestamp('2024-03-01T22:00:00+13:00') == utc(2024, 3, 1, 9)

    def test_ensure_utc_naive(self):
        """Naive values are labelled UTC without shifting."""
        from pricewatch.price_history import ensure_utc

        assert ensure_utc(datetime(2024, 3, 1, 9)) == utc(2024, 3, 1, 9)

    def test_ensure_utc_aware(self):
        """Aware values are shifted to UTC."""
        from pricewatch.price_history import ensure_utc

        moment = datetime(2024, 3, 1, 4, tzinfo=timezone(timedelta(hours=-5)))
        assert ensure_utc(moment) == utc(2024, 3, 1, 9)
        assert ensure_utc(moment).tzinfo == timezone.utc
