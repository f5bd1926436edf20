from __future__ import annotations

from datetime import datetime
from pathlib import Path, PurePosixPath
import secrets
from typing import Any
from urllib.parse import unquote, urlsplit

from sharetask.core.settings import TaskSettings
from sharetask.core.task_info import DataType
from sharetask.util.paths import append_extension, collision_safe, ensure_dir, valid_file_name

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".tif", ".tiff", ".webp"}
TEXT_EXTENSIONS = {".txt", ".log", ".md", ".nfo", ".c", ".cpp", ".cs", ".h", ".java", ".js",
                   ".json", ".css", ".htm", ".html", ".xml", ".py", ".php", ".sh", ".ini", ".csv"}

def find_data_type(path_or_url: str) -> DataType:
    """Classify a file path or URL by its extension."""
    path = urlsplit(path_or_url).path if "://" in path_or_url else path_or_url
    ext = PurePosixPath(path.replace("\\", "/")).suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return DataType.IMAGE
    if ext in TEXT_EXTENSIONS:
        return DataType.TEXT
    return DataType.FILE

def render_name_pattern(pattern: str, now: datetime | None = None, image: Any = None) -> str:
    """Render a file name (without extension) from pattern tokens.

    Supported tokens:
      {date} {time} {unix} {rand} {width} {height}
    """
    now = now or datetime.now()
    width = height = 0
    if image is not None:
        width = _dimension(image, "width")
        height = _dimension(image, "height")
    ctx: dict[str, Any] = {
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H-%M-%S"),
        "unix": int(now.timestamp()),
        "rand": secrets.token_hex(4),
        "width": width,
        "height": height,
    }
    try:
        return valid_file_name(pattern.format(**ctx))
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Name pattern format error: {e}") from e

def get_file_name(settings: TaskSettings, ext: str, image: Any = None, now: datetime | None = None) -> str:
    name = render_name_pattern(settings.name_pattern, now=now, image=image) or "untitled"
    return append_extension(name, ext)

def check_file_path(folder: str, file_name: str) -> str:
    """Return a free path for ``file_name`` inside ``folder``, creating the folder."""
    if not folder or not file_name:
        return ""
    target = ensure_dir(Path(folder)) / file_name
    return str(collision_safe(target))

def file_name_from_url(url: str) -> str:
    path = urlsplit(url.strip()).path
    name = unquote(PurePosixPath(path).name)
    return valid_file_name(name)

def _dimension(image: Any, attr: str) -> int:
    value = getattr(image, attr, 0)
    if callable(value):
        value = value()
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
