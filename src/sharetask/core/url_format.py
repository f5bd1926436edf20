from __future__ import annotations

from pathlib import Path
import re
from urllib.parse import urlsplit, urlunsplit

from sharetask.core.task_info import TaskInfo

_TOKEN = re.compile(r"\$(url|shorturl|thumbnailurl|deletionurl|filepath|filename|filenamenoext|folderpath|foldername|uploadtime)\b")

def force_https(url: str) -> str:
    if not url:
        return url
    parts = urlsplit(url)
    if parts.scheme.lower() == "http":
        return urlunsplit(("https",) + tuple(parts[1:]))
    return url

def format_upload_info(info: TaskInfo, template: str) -> str:
    """Expand ``$token`` placeholders in clipboard/open-URL templates.

    Tokens: $url $shorturl $thumbnailurl $deletionurl $filepath $filename
    $filenamenoext $folderpath $foldername $uploadtime
    """
    result = info.result
    file_path = Path(info.file_path) if info.file_path else None
    values = {
        "url": str(result),
        "shorturl": result.shortened_url,
        "thumbnailurl": result.thumbnail_url,
        "deletionurl": result.deletion_url,
        "filepath": info.file_path,
        "filename": info.file_name,
        "filenamenoext": Path(info.file_name).stem if info.file_name else "",
        "folderpath": str(file_path.parent) if file_path else "",
        "foldername": file_path.parent.name if file_path else "",
        "uploadtime": info.upload_time.isoformat() if info.upload_time else "",
    }
    return _TOKEN.sub(lambda m: values[m.group(1)], template)
