"""Tests for time helpers"""
from datetime import datetime, timezone

import pytest

from govflow.utils.time import format_iso, hours_since, parse_iso


def test_parse_iso_naive_is_utc():
    assert parse_iso("2026-03-01T10:00:00") == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)


def test_parse_iso_date_only():
    assert parse_iso("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_parse_iso_rejects_garbage():
    with pytest.raises(ValueError):
        parse_iso("next tuesday")


def test_format_iso_uses_z_suffix():
    assert format_iso(datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)) == "2026-03-01T10:30:00Z"


def test_hours_since():
    start = datetime(2026, 3, 1, 10, tzinfo=timezone.utc)

    assert hours_since(start, now=datetime(2026, 3, 1, 22, 30, tzinfo=timezone.utc)) == 12.5
    assert hours_since(start, now=datetime(2026, 3, 1, 9, tzinfo=timezone.utc)) == -1.0
    assert hours_since(datetime(2026, 3, 1, 10), now=start) == 0.0
