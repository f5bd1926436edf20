from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import shutil
import time
from typing import Any, BinaryIO, Callable, Protocol

from sharetask.core.settings import TaskSettings
from sharetask.core.task_info import ProgressSnapshot, TaskInfo
from sharetask.core.upload_result import UploadResult

ProgressCb = Callable[[ProgressSnapshot], None]
CancelCb = Callable[[], bool]  # returns True if cancelled


class Uploader:
    """Base for image/text/file uploaders.

    Subclasses implement ``upload``. They should push bytes through
    ``transfer`` (or call ``report_progress`` themselves) so progress and
    stop requests work.

    Report a failure either in ``errors`` or in the returned result, not both:
    after every attempt the task appends ``errors`` and also merges the
    result's own errors, so a message placed in both is counted twice.
    """

    def __init__(self) -> None:
        self.buffer_size = 8192
        self.verify_ssl = True
        self.errors: list[str] = []
        self.stop_requested = False
        self.progress_callbacks: list[ProgressCb] = []
        self.early_url_copy_callbacks: list[Callable[[str], None]] = []
        self._started_at = 0.0

    def upload(self, stream: BinaryIO, file_name: str) -> UploadResult | None:
        raise NotImplementedError

    def stop_upload(self) -> None:
        self.stop_requested = True

    def report_progress(self, position: int, length: int) -> None:
        if not self._started_at:
            self._started_at = time.monotonic()
        elapsed = max(time.monotonic() - self._started_at, 1e-6)
        snapshot = ProgressSnapshot(position=position, length=length, speed=position / elapsed, elapsed=elapsed)
        for cb in list(self.progress_callbacks):
            cb(snapshot)

    def request_early_url_copy(self, url: str) -> None:
        for cb in list(self.early_url_copy_callbacks):
            cb(url)

    def transfer(self, src: BinaryIO, dst: BinaryIO, length: int = 0) -> bool:
        """Copy ``src`` to ``dst`` in buffer-sized chunks; False if stopped midway."""
        self._started_at = time.monotonic()
        position = 0
        while True:
            if self.stop_requested:
                return False
            chunk = src.read(self.buffer_size)
            if not chunk:
                return True
            dst.write(chunk)
            position += len(chunk)
            self.report_progress(position, length)


class FileAction(Protocol):
    """Post-capture action run against the task file; returns the file to continue with."""
    name: str
    is_active: bool

    def run(self, file_path: str) -> str: ...


class URLShortener:
    def shorten_url(self, url: str) -> UploadResult | None:
        raise NotImplementedError


class URLSharingService:
    def share_url(self, url: str) -> None:
        raise NotImplementedError


class UploaderFactory:
    """Resolves destination identifiers to configured clients.

    Any method may return None, meaning the destination is not configured.
    """

    def image_uploader(self, destination: str) -> Uploader | None:
        return None

    def text_uploader(self, destination: str) -> Uploader | None:
        return None

    def file_uploader(self, destination: str) -> Uploader | None:
        return None

    def url_shortener(self, destination: str) -> URLShortener | None:
        return None

    def sharing_service(self, destination: str) -> URLSharingService | None:
        return None


@dataclass
class ImageData:
    """Serialized image ready for upload or saving."""
    stream: BinaryIO
    extension: str

    def write(self, path: str) -> bool:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        pos = self.stream.tell()
        try:
            self.stream.seek(0)
            with target.open("wb") as f:
                shutil.copyfileobj(self.stream, f)
        finally:
            self.stream.seek(pos)
        return target.exists()


class ImageProcessor:
    """Image transforms applied during the content-transform stage.

    ``apply_effects``, ``annotate`` and ``serialize`` return None when they
    produce nothing; the task treats that as a cancelled transform.
    """

    def load_image(self, path: str) -> Any:
        raise NotImplementedError

    def apply_effects(self, image: Any, settings: TaskSettings) -> Any:
        return image

    def annotate(self, image: Any, file_name: str) -> Any:
        return image

    def serialize(self, image: Any, settings: TaskSettings) -> ImageData | None:
        raise NotImplementedError

    def create_thumbnail(self, image: Any, folder: str, file_name: str, settings: TaskSettings) -> str:
        return ""

    def print_image(self, image: Any) -> None:
        raise NotImplementedError

    def release(self, image: Any) -> None:
        close = getattr(image, "close", None)
        if callable(close):
            close()


class Clipboard:
    def clear(self) -> None:
        raise NotImplementedError

    def copy_image(self, image: Any) -> None:
        raise NotImplementedError

    def copy_file(self, file_path: str) -> None:
        raise NotImplementedError

    def copy_text(self, text: str) -> None:
        raise NotImplementedError


class Desktop:
    def open_url(self, url: str) -> None:
        raise NotImplementedError

    def open_folder_with_file(self, file_path: str) -> None:
        raise NotImplementedError


class Downloader:
    def download(self, url: str, file_path: str, cancel_cb: CancelCb | None = None) -> None:
        raise NotImplementedError


class Prompts:
    """Interactive confirmations. The save prompt keeps its own last-folder state."""

    def confirm_first_upload(self) -> bool:
        return True

    def confirm_large_upload(self, size: int) -> bool:
        return True

    def confirm_before_upload(self, info: TaskInfo) -> bool:
        return True

    def ask_save_path(self, initial_folder: str, file_name: str) -> str | None:
        return None
