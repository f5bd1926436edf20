from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sharetask.core.history import HistoryItem, parse_utc_timestamp


def test_history_round_trip() -> None:
    item = HistoryItem(
        file_path="/captures/a.png",
        file_name="a.png",
        url="https://i.example/a.png",
        thumbnail_url="https://i.example/a_t.png",
        deletion_url="https://i.example/delete/a",
        shortened_url="https://sho.rt/a",
        time=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )
    assert HistoryItem.from_dict(item.to_dict()) == item


def test_parse_naive_timestamp_as_utc() -> None:
    dt = parse_utc_timestamp("2024-05-01 12:30:00")
    assert dt == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def test_parse_offset_timestamp_converts_to_utc() -> None:
    dt = parse_utc_timestamp("2024-05-01T14:30:00+02:00")
    assert dt == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert dt.utcoffset() == timedelta(0)


def test_missing_timestamp_raises() -> None:
    with pytest.raises(ValueError):
        HistoryItem.from_dict({"url": "https://i.example/a.png"})
