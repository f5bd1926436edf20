from __future__ import annotations

from datetime import datetime, timezone
import io
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Callable

from sharetask.core.naming import check_file_path
from sharetask.core.post_upload import PostUploadChain
from sharetask.core.settings import AfterCaptureTasks
from sharetask.core.task_info import DataType, TaskJob
from sharetask.core.upload_engine import UploadRetryEngine
from sharetask.util.errors import DownloadError, EmptyURLError, TransformFailure
from sharetask.util.paths import change_extension

if TYPE_CHECKING:
    from sharetask.runtime.worker_task import WorkerTask

_SAVE_OR_UPLOAD = (
    AfterCaptureTasks.SAVE_IMAGE_TO_FILE
    | AfterCaptureTasks.SAVE_IMAGE_TO_FILE_WITH_DIALOG
    | AfterCaptureTasks.UPLOAD_IMAGE_TO_HOST
)


class StageRunner:
    """Drives one task through prepare -> transform -> upload -> post-upload.

    Runs on the task's execution context (worker thread or caller). The stop
    flag is re-read before every stage; only the upload itself is actively
    aborted when a stop arrives mid-step.
    """

    def __init__(self, task: "WorkerTask", engine: UploadRetryEngine | None = None) -> None:
        self.task = task
        self.engine = engine or UploadRetryEngine(task, sleep=task.services.sleep)
        self.post_upload = PostUploadChain(task)
        self.upload_failed = False

    @property
    def stopped(self) -> bool:
        return self.task.info.stop_requested.is_set()

    def run(self) -> None:
        info = self.task.info
        info.start_time = datetime.now(timezone.utc)
        log = self.task.logger.log
        log(f"Task started: job={info.job.value} type={info.data_type.value} name={info.file_name}")

        try:
            if not self.prepare():
                info.stop_requested.set()
            if not self.stopped:
                self.upload_stage()
        finally:
            self.task.dispose()
            self._delete_file_if_requested()

        # Only the upload outcome gates the chain; earlier side-effect errors do not.
        result = info.result
        if not self.stopped and result.is_url_expected and not self.upload_failed:
            if not result.url:
                log("Upload finished without a URL.")
                result.add_error(str(EmptyURLError("URL is empty.")))
            else:
                self.post_upload.run()

        info.upload_time = datetime.now(timezone.utc)
        log(f"Task finished: url={result.url!r} errors={len(result.errors)} stopped={self.stopped}")

    # Preparation

    def prepare(self) -> bool:
        """Pre-flight and content stages; False short-circuits the task as cancelled."""
        task = self.task
        info = task.info
        settings = info.settings

        if info.is_upload_job and settings.auto_clear_clipboard:
            self._run_step("Clear clipboard", task.services.clipboard.clear)

        if info.job == TaskJob.DOWNLOAD_UPLOAD and not self.download():
            return False

        if self.stopped:
            return False

        if info.job == TaskJob.JOB:
            if not self.transform_content():
                return False
            if self.stopped:
                return False
            self.file_side_effects()
        elif info.job == TaskJob.TEXT_UPLOAD and task.text:
            self.materialize_text()
        elif info.job == TaskJob.FILE_UPLOAD and settings.use_after_capture_tasks_during_file_upload:
            self.file_side_effects()

        data = task.data
        if info.is_upload_job and data is not None and data.seekable():
            data.seek(0)
        return True

    def download(self) -> bool:
        task = self.task
        info = task.info
        url = info.result.url.strip()
        info.result.url = ""
        info.file_path = check_file_path(info.settings.capture_folder, info.file_name)
        if not info.file_path:
            return False

        task.set_status_text("Downloading...")
        try:
            task.services.downloader.download(url, info.file_path, cancel_cb=info.stop_requested.as_cancel_cb())
            if self.stopped:
                return False
            task.load_file_stream()
        except Exception as e:
            error = e if isinstance(e, DownloadError) else DownloadError(f"Download failed: {e}")
            task.logger.log_exception(e, f"Download of {url} failed")
            info.result.add_error(str(error))
            return False
        task.logger.log(f"Downloaded {url} to {info.file_path}")
        return True

    def transform_content(self) -> bool:
        try:
            self._transform_image()
        except TransformFailure as e:
            self.task.logger.log(f"Transform stopped the task: {e}")
            return False
        return True

    def _transform_image(self) -> None:
        task = self.task
        info = task.info
        settings = info.settings
        flags = settings.after_capture
        processor = task.services.image_processor
        clipboard = task.services.clipboard

        image = task.image
        if image is None:
            return

        if AfterCaptureTasks.ADD_IMAGE_EFFECTS in flags:
            image = task.replace_image(processor.apply_effects(image, settings))
            if image is None:
                raise TransformFailure("Applying image effects resulted in an empty image.")

        if AfterCaptureTasks.ANNOTATE_IMAGE in flags:
            image = task.replace_image(processor.annotate(image, info.file_name))
            if image is None:
                raise TransformFailure("Annotation was cancelled or produced no image.")

        if AfterCaptureTasks.COPY_IMAGE_TO_CLIPBOARD in flags:
            if self._run_step("Copy image to clipboard", clipboard.copy_image, image):
                task.logger.log("Image copied to clipboard.")

        if AfterCaptureTasks.SEND_IMAGE_TO_PRINTER in flags:
            self._run_step("Print image", processor.print_image, image)

        if not flags & _SAVE_OR_UPLOAD:
            return

        image_data = processor.serialize(image, settings)
        if image_data is None:
            raise TransformFailure("Image could not be serialized.")
        task.replace_data(image_data.stream)
        info.file_name = change_extension(info.file_name, image_data.extension)

        if AfterCaptureTasks.SAVE_IMAGE_TO_FILE in flags:
            file_path = check_file_path(settings.capture_folder, info.file_name)
            if file_path:
                info.file_path = file_path
                image_data.write(file_path)
                task.logger.log(f"Image saved to file: {file_path}")

        if AfterCaptureTasks.SAVE_IMAGE_TO_FILE_WITH_DIALOG in flags:
            self._save_with_dialog(image_data)

        if AfterCaptureTasks.SAVE_THUMBNAIL_IMAGE_TO_FILE in flags:
            if info.file_path:
                thumbnail_name = Path(info.file_path).name
                thumbnail_folder = str(Path(info.file_path).parent)
            else:
                thumbnail_name = info.file_name
                thumbnail_folder = settings.capture_folder
            info.thumbnail_path = processor.create_thumbnail(image, thumbnail_folder, thumbnail_name, settings)
            if info.thumbnail_path:
                task.logger.log(f"Thumbnail saved to file: {info.thumbnail_path}")

        task.release_image()

    def _save_with_dialog(self, image_data) -> None:
        task = self.task
        info = task.info
        while True:
            path = task.services.prompts.ask_save_path(info.settings.capture_folder, info.file_name)
            if not path:
                return
            info.file_path = path
            try:
                saved = image_data.write(path)
            except OSError as e:
                task.logger.log_exception(e, f"Saving to {path} failed")
                saved = False
            if saved:
                task.logger.log(f"Image saved to file with dialog: {path}")
                return

    def file_side_effects(self) -> None:
        task = self.task
        info = task.info
        settings = info.settings
        flags = settings.after_capture
        if not info.file_path or not os.path.isfile(info.file_path):
            return

        if AfterCaptureTasks.PERFORM_ACTIONS in flags:
            actions = [a for a in settings.file_actions if a.is_active]
            if actions:
                task.close_data()
                for action in actions:
                    self._run_step(
                        f"File action {getattr(action, 'name', action)}",
                        lambda a=action: setattr(info, "file_path", a.run(info.file_path)),
                    )
                self._run_step("Reopen file", task.load_file_stream)

        clipboard = task.services.clipboard
        if AfterCaptureTasks.COPY_FILE_TO_CLIPBOARD in flags:
            self._run_step("Copy file to clipboard", clipboard.copy_file, info.file_path)
        elif AfterCaptureTasks.COPY_FILE_PATH_TO_CLIPBOARD in flags:
            self._run_step("Copy file path to clipboard", clipboard.copy_text, info.file_path)

        if AfterCaptureTasks.SHOW_IN_EXPLORER in flags:
            self._run_step("Show in file manager", task.services.desktop.open_folder_with_file, info.file_path)

    def materialize_text(self) -> None:
        task = self.task
        info = task.info
        settings = info.settings
        text = task.text

        if settings.text_task_save_as_file:
            file_path = check_file_path(settings.capture_folder, info.file_name)
            if file_path:
                info.file_path = file_path
                Path(file_path).write_text(text, encoding="utf-8")
                task.logger.log(f"Text saved to file: {file_path}")

        task.replace_data(io.BytesIO(text.encode("utf-8")))

    # Upload

    def upload_stage(self) -> None:
        task = self.task
        info = task.info
        settings = info.settings
        result = info.result

        if not info.is_upload_job:
            result.is_url_expected = False
            return

        prompts = task.services.prompts
        if settings.show_upload_warning and not prompts.confirm_first_upload():
            task.logger.log("First upload warning declined.")
            info.request_setting_update.set()
            task.stop()

        if settings.large_file_size_warning > 0 and not self.stopped:
            size = _stream_length(task.data)
            if size > settings.large_file_size_bytes and not prompts.confirm_large_upload(size):
                task.logger.log(f"Large upload declined ({size} bytes).")
                task.stop()

        if self.stopped:
            result.is_url_expected = False
            return

        task.mark_working()

        if AfterCaptureTasks.SHOW_BEFORE_UPLOAD_WINDOW in settings.after_capture:
            if not prompts.confirm_before_upload(info):
                task.logger.log("Upload declined in before-upload window.")
                result.is_url_expected = False
                return

        task.on_upload_started()

        if task.data is None and info.data_type != DataType.URL:
            result.add_error("Nothing to upload.")
            self.upload_failed = True
            return

        self.upload_failed = self.engine.run()

    # Helpers

    def _run_step(self, label: str, fn: Callable[..., Any], *args: Any) -> bool:
        try:
            fn(*args)
        except Exception as e:
            self.task.logger.log_exception(e, f"{label} failed")
            self.task.info.result.add_error(f"{label} failed: {e}")
            return False
        return True

    def _delete_file_if_requested(self) -> None:
        info = self.task.info
        if (
            info.job == TaskJob.JOB
            and AfterCaptureTasks.DELETE_FILE in info.settings.after_capture
            and info.file_path
            and os.path.isfile(info.file_path)
        ):
            try:
                os.remove(info.file_path)
            except OSError as e:
                self.task.logger.log_exception(e, f"Deleting {info.file_path} failed")
                return
            self.task.logger.log(f"Deleted file after capture: {info.file_path}")


def _stream_length(stream: BinaryIO | None) -> int:
    if stream is None or not stream.seekable():
        return 0
    pos = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(pos)
    return end
