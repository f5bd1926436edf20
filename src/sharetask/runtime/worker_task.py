from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import threading
from typing import Any, BinaryIO

from sharetask.core.collaborators import Uploader
from sharetask.core.debug_log import DebugLogger
from sharetask.core.history import HistoryItem
from sharetask.core.naming import file_name_from_url, find_data_type, get_file_name
from sharetask.core.settings import TaskSettings
from sharetask.core.stages import StageRunner
from sharetask.core.task_info import STATUS_ORDER, DataType, ProgressSnapshot, TaskInfo, TaskJob, TaskStatus
from sharetask.runtime.relay import ProgressRelay
from sharetask.runtime.services import TaskServices
from sharetask.runtime.workers import TaskWorker
from sharetask.util.errors import TaskCreationError
from sharetask.util.paths import append_extension


class WorkerTask:
    """One unit of content moving through the upload pipeline.

    Build it with one of the ``create_*`` factories, subscribe to
    ``task.relay`` signals, then call ``start()`` (background QThread) or
    ``start_sync()``. ``stop()`` may be called from the owning thread at any
    time. The task owns its payload stream and in-memory image; both are
    released exactly once, before ``upload_completed`` fires.
    """

    def __init__(self, settings: TaskSettings | None, services: TaskServices | None = None) -> None:
        self.info = TaskInfo(settings)
        self.services = services or TaskServices()
        self.relay = ProgressRelay()
        self.text: str | None = None
        self._status = TaskStatus.IN_QUEUE
        self._lock = threading.RLock()
        self._data: BinaryIO | None = None
        self._image: Any = None
        self._uploader: Uploader | None = None
        self._worker: TaskWorker | None = None
        self._completed = False

    # Factories

    @classmethod
    def create_history_task(cls, item: HistoryItem, services: TaskServices | None = None) -> "WorkerTask":
        task = cls(None, services)
        task._status = TaskStatus.HISTORY
        info = task.info
        info.file_path = item.file_path
        info.file_name = item.file_name
        info.result.url = item.url
        info.result.thumbnail_url = item.thumbnail_url
        info.result.deletion_url = item.deletion_url
        info.result.shortened_url = item.shortened_url
        info.upload_time = item.time
        return task

    @classmethod
    def create_data_upload_task(
        cls,
        data_type: DataType,
        stream: BinaryIO,
        file_name: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        task.info.job = TaskJob.DATA_UPLOAD
        task.info.data_type = data_type
        task.info.file_name = file_name
        task._data = stream
        return task

    @classmethod
    def create_file_upload_task(
        cls,
        file_path: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.file_path = file_path
        info.data_type = find_data_type(file_path)

        if settings.file_upload_use_name_pattern:
            info.file_name = get_file_name(settings, Path(file_path).suffix)

        if settings.process_images_during_file_upload and info.data_type == DataType.IMAGE:
            info.job = TaskJob.JOB
            task._image = task.services.image_processor.load_image(file_path)
            if task._image is None:
                raise TaskCreationError(f"Could not load image: {file_path}")
        else:
            info.job = TaskJob.FILE_UPLOAD
            task._open_for_creation()
        return task

    @classmethod
    def create_image_upload_task(
        cls,
        image: Any,
        settings: TaskSettings,
        services: TaskServices | None = None,
        custom_file_name: str | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.job = TaskJob.JOB
        info.data_type = DataType.IMAGE
        if custom_file_name:
            info.file_name = append_extension(custom_file_name, "bmp")
        else:
            info.file_name = get_file_name(settings, "bmp", image=image)
        task._image = image
        return task

    @classmethod
    def create_text_upload_task(
        cls,
        text: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.job = TaskJob.TEXT_UPLOAD
        info.data_type = DataType.TEXT
        info.file_name = get_file_name(settings, settings.text_file_extension)
        task.text = text
        return task

    @classmethod
    def create_url_shortener_task(
        cls,
        url: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.job = TaskJob.SHORTEN_URL
        info.data_type = DataType.URL
        info.file_name = f"Shorten URL ({settings.destinations.url_shortener})"
        info.result.url = url
        return task

    @classmethod
    def create_share_url_task(
        cls,
        url: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.job = TaskJob.SHARE_URL
        info.data_type = DataType.URL
        info.file_name = f"Share URL ({settings.destinations.url_sharing})"
        info.result.url = url
        return task

    @classmethod
    def create_file_job_task(
        cls,
        file_path: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
        custom_file_name: str | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.file_path = file_path
        info.data_type = find_data_type(file_path)
        ext = Path(file_path).suffix

        if custom_file_name:
            info.file_name = append_extension(custom_file_name, ext)
        elif settings.file_upload_use_name_pattern:
            info.file_name = get_file_name(settings, ext)

        info.job = TaskJob.JOB
        if info.is_upload_job:
            task._open_for_creation()
        return task

    @classmethod
    def create_download_upload_task(
        cls,
        url: str,
        settings: TaskSettings,
        services: TaskServices | None = None,
    ) -> "WorkerTask":
        task = cls(settings, services)
        info = task.info
        info.job = TaskJob.DOWNLOAD_UPLOAD
        info.data_type = find_data_type(url)

        file_name = file_name_from_url(url)
        if settings.file_upload_use_name_pattern:
            file_name = get_file_name(settings, Path(file_name).suffix)
        if not file_name:
            raise TaskCreationError(f"Could not derive a file name from URL: {url}")

        info.file_name = file_name
        info.result.url = url
        return task

    # State

    @property
    def logger(self) -> DebugLogger:
        return self.services.logger

    @property
    def status(self) -> TaskStatus:
        with self._lock:
            return self._status

    @property
    def is_working(self) -> bool:
        return self.status in (TaskStatus.PREPARING, TaskStatus.WORKING, TaskStatus.STOPPING)

    @property
    def is_busy(self) -> bool:
        return self.status == TaskStatus.IN_QUEUE or self.is_working

    @property
    def stop_requested(self) -> bool:
        return self.info.stop_requested.is_set()

    @property
    def data(self) -> BinaryIO | None:
        return self._data

    @property
    def image(self) -> Any:
        return self._image

    def _advance_status(self, status: TaskStatus) -> bool:
        with self._lock:
            if self._status == TaskStatus.HISTORY:
                return False
            if STATUS_ORDER[status] <= STATUS_ORDER[self._status]:
                return False
            self._status = status
            return True

    # Lifecycle

    def start(self) -> None:
        """Run the task on a dedicated background thread. No-op unless queued."""
        if not self._begin():
            return
        self._worker = TaskWorker(self)
        self.relay.attach(self._worker)
        self._worker.start()

    def start_sync(self) -> None:
        """Run the task to completion on the calling thread. No-op unless queued."""
        if not self._begin():
            return
        self.do_work()
        self.thread_completed()

    def _begin(self) -> bool:
        with self._lock:
            if self._status != TaskStatus.IN_QUEUE or self.info.stop_requested:
                return False
            self._status = TaskStatus.PREPARING
        if self.info.job in (TaskJob.JOB, TaskJob.TEXT_UPLOAD):
            self.info.status_text = "Preparing..."
        else:
            self.info.status_text = "Starting..."
        self.on_status_changed()
        return True

    def stop(self) -> None:
        self.info.stop_requested.set()
        with self._lock:
            status = self._status
            uploader = self._uploader

        if status == TaskStatus.IN_QUEUE:
            self._complete()
        elif status in (TaskStatus.PREPARING, TaskStatus.WORKING):
            if uploader is not None:
                uploader.stop_upload()
            if self._advance_status(TaskStatus.STOPPING):
                self.set_status_text("Stopping...")

    def do_work(self) -> None:
        """Stage body of the task; never raises."""
        try:
            StageRunner(self).run()
        except Exception as e:
            self.logger.log_exception(e, "Task failed")
            self.info.result.add_error(f"{type(e).__name__}: {e}")
        finally:
            self.dispose()
            if self.info.upload_time is None:
                self.info.upload_time = datetime.now(timezone.utc)

    def thread_completed(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.wait()
        self._complete()

    def _complete(self) -> None:
        with self._lock:
            if self._completed or self._status == TaskStatus.HISTORY:
                return
            self._completed = True
            self._status = TaskStatus.COMPLETED
        self.info.status_text = "Stopped" if self.stop_requested else "Done"
        self.dispose()
        self.relay.upload_completed.emit(self)

    def dispose(self) -> None:
        """Release the payload stream and image buffer. Safe to call repeatedly."""
        with self._lock:
            data, self._data = self._data, None
            image, self._image = self._image, None
            self.text = None
        if data is not None:
            data.close()
        if image is not None:
            self.services.image_processor.release(image)

    # Resources used by the stages

    def replace_data(self, stream: BinaryIO | None) -> None:
        with self._lock:
            old, self._data = self._data, stream
        if old is not None and old is not stream:
            old.close()

    def close_data(self) -> None:
        self.replace_data(None)

    def load_file_stream(self) -> None:
        self.replace_data(open(self.info.file_path, "rb"))

    def _open_for_creation(self) -> None:
        try:
            self.load_file_stream()
        except OSError as e:
            raise TaskCreationError(f"Could not open {self.info.file_path}: {e}") from e

    def replace_image(self, image: Any) -> Any:
        with self._lock:
            old, self._image = self._image, image
        if old is not None and old is not image:
            self.services.image_processor.release(old)
        return image

    def release_image(self) -> None:
        self.replace_image(None)

    def set_uploader(self, uploader: Uploader | None) -> None:
        with self._lock:
            self._uploader = uploader

    def mark_working(self) -> None:
        if self._advance_status(TaskStatus.WORKING):
            self.set_status_text("Uploading...")

    # Events

    def _emitter(self):
        worker = self._worker
        return worker if worker is not None else self.relay

    def set_status_text(self, text: str) -> None:
        self.info.status_text = text
        self.on_status_changed()

    def on_status_changed(self) -> None:
        self._emitter().status_changed.emit(self)

    def on_upload_started(self) -> None:
        self._emitter().upload_started.emit(self)

    def on_uploader_progress(self, progress: ProgressSnapshot) -> None:
        if progress is None:
            return
        self.info.progress = progress
        self._emitter().upload_progress_changed.emit(self)

    def on_show_qr_code(self, text: str) -> None:
        self._emitter().show_qr_code.emit(text)
