from __future__ import annotations

from dataclasses import replace
import time
from typing import TYPE_CHECKING, Callable

from sharetask.core.collaborators import Uploader
from sharetask.core.settings import AfterUploadTasks
from sharetask.core.task_info import DataType
from sharetask.util.errors import UploadError

if TYPE_CHECKING:
    from sharetask.runtime.worker_task import WorkerTask

RETRY_BACKOFF_SECONDS = 1.0


class UploadRetryEngine:
    """Runs the upload attempts of one task.

    Attempt 0 uses the task's destinations. Each retry either switches to the
    next secondary destination (failover) or waits a fixed backoff and reuses
    the current one. All attempts fold into the task's single UploadResult.
    """

    def __init__(self, task: "WorkerTask", sleep: Callable[[float], None] = time.sleep) -> None:
        self.task = task
        self._sleep = sleep

    def run(self) -> bool:
        """Attempt the upload with bounded retry; True if the final attempt failed."""
        info = self.task.info
        result = info.result
        first_error = len(result.errors)
        max_retry = info.settings.max_upload_fail_retry

        is_error = self.attempt(0)
        if is_error and max_retry > 0:
            self.task.logger.log("Upload failed. Retrying upload.")

        retry = 1
        while is_error and retry <= max_retry and not info.stop_requested:
            is_error = self.attempt(retry)
            retry += 1

        if not is_error and len(result.errors) > first_error:
            # A later attempt succeeded: earlier attempt errors no longer fail the task.
            result.recovered_errors.extend(result.errors[first_error:])
            del result.errors[first_error:]
        return is_error

    def attempt(self, retry_index: int = 0) -> bool:
        """Run one upload attempt; True if it errored (never True once stopped)."""
        task = self.task
        info = task.info
        result = info.result

        if retry_index > 0:
            if info.settings.use_secondary_uploaders:
                self._apply_failover(retry_index)
            else:
                self._sleep(RETRY_BACKOFF_SECONDS)

        if info.stop_requested:
            return False

        errors_before = len(result.errors)
        uploader: Uploader | None = None
        try:
            uploader = self._create_uploader()
            if uploader is not None:
                self._prepare_uploader(uploader)
                task.set_uploader(uploader)
                if info.stop_requested:
                    uploader.stop_upload()
                    return False
                data = task.data
                if data is not None and data.seekable():
                    data.seek(0)
                result.merge(uploader.upload(task.data, info.file_name))
                if uploader.stop_requested:
                    info.stop_requested.set()
        except Exception as e:
            if not info.stop_requested:
                task.logger.log_exception(e, f"Upload attempt {retry_index} failed")
                result.add_error(str(UploadError(f"{type(e).__name__}: {e}")))
        finally:
            task.set_uploader(None)
            if uploader is not None:
                result.errors.extend(uploader.errors)

        if info.stop_requested:
            task.logger.log("Upload stopped.")
            return False
        return len(result.errors) > errors_before

    def _create_uploader(self) -> Uploader | None:
        info = self.task.info
        factory = self.task.services.uploaders
        kind = info.upload_destination
        if kind == DataType.URL:
            return None
        if kind == DataType.IMAGE:
            return factory.image_uploader(info.destinations.image)
        if kind == DataType.TEXT:
            return factory.text_uploader(info.destinations.text)
        return factory.file_uploader(info.file_destination)

    def _prepare_uploader(self, uploader: Uploader) -> None:
        settings = self.task.info.settings
        uploader.buffer_size = settings.buffer_size
        uploader.verify_ssl = not settings.accept_invalid_ssl_certificates
        uploader.progress_callbacks.append(self.task.on_uploader_progress)
        if AfterUploadTasks.COPY_URL_TO_CLIPBOARD in settings.after_upload and settings.early_copy_url:
            uploader.early_url_copy_callbacks.append(self.task.services.clipboard.copy_text)

    def _apply_failover(self, retry_index: int) -> None:
        info = self.task.info
        settings = info.settings
        i = retry_index - 1
        current = info.destinations
        secondary_file = _pick(settings.secondary_file_uploaders, i, "")
        info.destinations = replace(
            current,
            image=_pick(settings.secondary_image_uploaders, i, current.image),
            text=_pick(settings.secondary_text_uploaders, i, current.text),
            file=secondary_file or current.file,
            image_file=secondary_file or current.image_file,
            text_file=secondary_file or current.text_file,
        )
        self.task.logger.log(
            f"Retry {retry_index}: using secondary destinations "
            f"image={info.destinations.image}, text={info.destinations.text}, file={info.destinations.file}"
        )


def _pick(values: tuple[str, ...], index: int, fallback: str) -> str:
    if 0 <= index < len(values):
        return values[index]
    return fallback
