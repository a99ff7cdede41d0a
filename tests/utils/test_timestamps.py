"""
Tests for UTC timestamp helpers.
"""
from datetime import datetime, timedelta, timezone

from pingy.utils.datetime_utils import ensure_utc, to_iso_utc, utc_now


class TestUtcNow:

    def test_is_aware_utc(self):
        assert utc_now().tzinfo == timezone.utc

    def test_is_current(self):
        before = datetime.now(timezone.utc)
        result = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= result <= after


class TestEnsureUtc:
    """Tests for ensure_utc()."""

    def test_naive_is_taken_as_utc(self):
        naive = datetime(2025, 12, 16, 11, 30)

        result = ensure_utc(naive)

        assert result.tzinfo == timezone.utc
        assert result.hour == 11

    def test_other_offset_is_converted(self):
        manila = datetime(2025, 12, 16, 19, 30, tzinfo=timezone(timedelta(hours=8)))

        result = ensure_utc(manila)

        assert result == datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_none_passes_through(self):
        assert ensure_utc(None) is None


class TestToIsoUtc:
    """Tests for to_iso_utc()."""

    def test_z_suffix(self):
        assert to_iso_utc(datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)) == "2025-12-16T11:30:00Z"

    def test_naive_gets_z_suffix(self):
        assert to_iso_utc(datetime(2025, 12, 16, 11, 30, 0, 500000)) == "2025-12-16T11:30:00.500000Z"

    def test_none(self):
        assert to_iso_utc(None) is None
