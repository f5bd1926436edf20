from __future__ import annotations

from pathlib import Path
import re

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

def ensure_dir(p: Path) -> Path:
    p.mkdir(parents=True, exist_ok=True)
    return p

def ensure_parent_dir(p: Path) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    return p

def collision_safe(path: Path) -> Path:
    if not path.exists():
        return path
    stem = path.stem
    suf = path.suffix
    parent = path.parent
    i = 1
    while True:
        cand = parent / f"{stem} ({i}){suf}"
        if not cand.exists():
            return cand
        i += 1

def valid_file_name(name: str) -> str:
    """Strip characters that are not allowed in file names on any desktop OS."""
    return _INVALID_FILENAME_CHARS.sub("", name).strip().rstrip(".")

def change_extension(file_name: str, ext: str) -> str:
    ext = ext.lstrip(".")
    if not file_name:
        return ""
    stem = Path(file_name).stem if Path(file_name).suffix else file_name
    return f"{stem}.{ext}" if ext else stem

def append_extension(file_name: str, ext: str) -> str:
    ext = ext.lstrip(".")
    if not ext or file_name.lower().endswith("." + ext.lower()):
        return file_name
    return f"{file_name}.{ext}"
