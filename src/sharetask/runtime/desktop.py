from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QMimeData, QObject, Qt, QUrl, Signal, Slot
from PySide6.QtGui import QDesktopServices, QGuiApplication, QImage, QPainter

from sharetask.core.collaborators import CancelCb, Clipboard, Desktop, Downloader, ImageData, ImageProcessor
from sharetask.core.settings import TaskSettings
from sharetask.util.errors import DownloadError
from sharetask.util.paths import collision_safe, ensure_dir, ensure_parent_dir
from sharetask.util.platform import open_folder_with_file


class QtClipboard(QObject, Clipboard):
    """System clipboard access, marshaled onto the thread that created it."""
    _clear_requested = Signal()
    _text_requested = Signal(str)
    _image_requested = Signal(object)
    _file_requested = Signal(str)

    def __init__(self) -> None:
        QObject.__init__(self)
        self._clear_requested.connect(self._clear)
        self._text_requested.connect(self._set_text)
        self._image_requested.connect(self._set_image)
        self._file_requested.connect(self._set_file)

    def clear(self) -> None:
        self._clear_requested.emit()

    def copy_text(self, text: str) -> None:
        self._text_requested.emit(text)

    def copy_image(self, image: Any) -> None:
        self._image_requested.emit(image)

    def copy_file(self, file_path: str) -> None:
        self._file_requested.emit(file_path)

    @Slot()
    def _clear(self) -> None:
        QGuiApplication.clipboard().clear()

    @Slot(str)
    def _set_text(self, text: str) -> None:
        QGuiApplication.clipboard().setText(text)

    @Slot(object)
    def _set_image(self, image: Any) -> None:
        QGuiApplication.clipboard().setImage(image)

    @Slot(str)
    def _set_file(self, file_path: str) -> None:
        mime = QMimeData()
        mime.setUrls([QUrl.fromLocalFile(file_path)])
        QGuiApplication.clipboard().setMimeData(mime)


class QtDesktop(QObject, Desktop):
    _open_url_requested = Signal(str)

    def __init__(self) -> None:
        QObject.__init__(self)
        self._open_url_requested.connect(self._open_url)

    def open_url(self, url: str) -> None:
        self._open_url_requested.emit(url)

    def open_folder_with_file(self, file_path: str) -> None:
        open_folder_with_file(Path(file_path))

    @Slot(str)
    def _open_url(self, url: str) -> None:
        QDesktopServices.openUrl(QUrl(url))


class UrllibDownloader(Downloader):
    def __init__(self, *, timeout_seconds: float = 30.0, user_agent: str = "sharetask/1.0", chunk_size: int = 64 * 1024) -> None:
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.chunk_size = chunk_size

    def download(self, url: str, file_path: str, cancel_cb: CancelCb | None = None) -> None:
        request = Request(url, headers={"User-Agent": self.user_agent})
        target = ensure_parent_dir(Path(file_path))
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response, target.open("wb") as f:
                while True:
                    if cancel_cb and cancel_cb():
                        return
                    chunk = response.read(self.chunk_size)
                    if not chunk:
                        return
                    f.write(chunk)
        except (HTTPError, URLError, TimeoutError) as exc:
            raise DownloadError(f"Download failed: {exc}") from exc


ImageEffect = Callable[[QImage], "QImage | None"]


class QtImageProcessor(ImageProcessor):
    """QImage-backed transforms.

    Effects are plain callables applied in order; any returning None or a null
    image empties the result. ``annotator`` stands in for an interactive editor.
    """

    def __init__(
        self,
        effects: list[ImageEffect] | None = None,
        annotator: Callable[[QImage, str], "QImage | None"] | None = None,
    ) -> None:
        self.effects = effects or []
        self.annotator = annotator

    def load_image(self, path: str) -> QImage | None:
        image = QImage(path)
        return None if image.isNull() else image

    def apply_effects(self, image: QImage, settings: TaskSettings) -> QImage | None:
        for effect in self.effects:
            image = effect(image)
            if image is None or image.isNull():
                return None
        return image

    def annotate(self, image: QImage, file_name: str) -> QImage | None:
        if self.annotator is None:
            return image
        annotated = self.annotator(image, file_name)
        if annotated is None or annotated.isNull():
            return None
        return annotated

    def serialize(self, image: QImage, settings: TaskSettings) -> ImageData | None:
        fmt = (settings.image_format or "png").lower()
        quality = settings.image_jpeg_quality if fmt in ("jpg", "jpeg") else -1
        data = QByteArray()
        buffer = QBuffer(data)
        buffer.open(QIODevice.WriteOnly)
        ok = image.save(buffer, fmt.upper(), quality)
        buffer.close()
        if not ok:
            return None
        return ImageData(stream=io.BytesIO(bytes(data)), extension=fmt)

    def create_thumbnail(self, image: QImage, folder: str, file_name: str, settings: TaskSettings) -> str:
        width, height = settings.thumbnail_width, settings.thumbnail_height
        if width <= 0 and height <= 0:
            return ""
        if width > 0 and height > 0:
            thumb = image.scaled(width, height, Qt.KeepAspectRatio, Qt.SmoothTransformation)
        elif width > 0:
            thumb = image.scaledToWidth(width, Qt.SmoothTransformation)
        else:
            thumb = image.scaledToHeight(height, Qt.SmoothTransformation)
        stem = Path(file_name).stem
        target = collision_safe(ensure_dir(Path(folder)) / f"{stem}-thumbnail.jpg")
        if not thumb.save(str(target), "JPG", 90):
            return ""
        return str(target)

    def print_image(self, image: QImage) -> None:
        from PySide6.QtPrintSupport import QPrinter

        printer = QPrinter(QPrinter.HighResolution)
        painter = QPainter(printer)
        try:
            rect = painter.viewport()
            size = image.size()
            size.scale(rect.size(), Qt.KeepAspectRatio)
            painter.setViewport(rect.x(), rect.y(), size.width(), size.height())
            painter.setWindow(image.rect())
            painter.drawImage(0, 0, image)
        finally:
            painter.end()

    def release(self, image: Any) -> None:
        # QImage memory is reclaimed when the last reference goes.
        return None
