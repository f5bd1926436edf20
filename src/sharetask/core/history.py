from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping
from dateutil import parser as dtparser

@dataclass(frozen=True)
class HistoryItem:
    """A persisted upload record, read back to build a replay-only task.

    ``time`` is always timezone-aware UTC.
    """
    file_path: str
    file_name: str
    url: str
    thumbnail_url: str
    deletion_url: str
    shortened_url: str
    time: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryItem":
        return cls(
            file_path=str(data.get("file_path") or ""),
            file_name=str(data.get("file_name") or ""),
            url=str(data.get("url") or ""),
            thumbnail_url=str(data.get("thumbnail_url") or ""),
            deletion_url=str(data.get("deletion_url") or ""),
            shortened_url=str(data.get("shortened_url") or ""),
            time=parse_utc_timestamp(data.get("time")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "deletion_url": self.deletion_url,
            "shortened_url": self.shortened_url,
            "time": self.time.isoformat(),
        }


def parse_utc_timestamp(value: Any) -> datetime:
    """Parse a stored timestamp; naive values are taken to be UTC."""
    if isinstance(value, datetime):
        dt = value
    elif value:
        dt = dtparser.parse(str(value))
    else:
        raise ValueError("History record has no timestamp.")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
