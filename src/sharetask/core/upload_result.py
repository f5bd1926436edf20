from __future__ import annotations

from dataclasses import dataclass, field

@dataclass
class UploadResult:
    """Outcome of the upload stage for one task.

    One instance lives on the task for its whole life; attempt results are
    folded into it with ``merge`` so errors from every attempt accumulate.
    """
    url: str = ""
    thumbnail_url: str = ""
    deletion_url: str = ""
    shortened_url: str = ""
    errors: list[str] = field(default_factory=list)
    recovered_errors: list[str] = field(default_factory=list)  # from attempts a later retry made good
    is_url_expected: bool = True

    @property
    def is_error(self) -> bool:
        return bool(self.errors)

    def add_error(self, message: str) -> None:
        if message:
            self.errors.append(message)

    def merge(self, other: "UploadResult | None") -> None:
        if other is None or other is self:
            return
        for name in ("url", "thumbnail_url", "deletion_url", "shortened_url"):
            value = getattr(other, name)
            if value:
                setattr(self, name, value)
        self.errors.extend(other.errors)

    def __str__(self) -> str:
        return self.shortened_url or self.url or ""
