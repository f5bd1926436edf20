from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from sharetask.core.settings import AfterUploadTasks
from sharetask.core.task_info import TaskJob
from sharetask.core.upload_result import UploadResult
from sharetask.core.url_format import force_https, format_upload_info
from sharetask.util.errors import PostUploadStepError

if TYPE_CHECKING:
    from sharetask.runtime.worker_task import WorkerTask


class PostUploadChain:
    """Best-effort actions run after a successful upload.

    Steps run in a fixed order. A failing step is logged and recorded in the
    result errors; the following steps still run.
    """

    def __init__(self, task: "WorkerTask") -> None:
        self.task = task

    def steps(self) -> list[tuple[str, Callable[[], None]]]:
        return [
            ("Force HTTPS", self.force_https),
            ("Shorten URL", self.shorten),
            ("Share URL", self.share),
            ("Copy URL to clipboard", self.copy_to_clipboard),
            ("Open URL", self.open_url),
            ("Show QR code", self.show_qr_code),
        ]

    def run(self) -> None:
        for label, step in self.steps():
            try:
                step()
            except Exception as e:
                self.task.logger.log_exception(e, f"{label} failed")
                self.task.info.result.add_error(str(PostUploadStepError(f"{label}: {e}")))

    def force_https(self) -> None:
        info = self.task.info
        if not info.settings.result_force_https:
            return
        result = info.result
        result.url = force_https(result.url)
        result.thumbnail_url = force_https(result.thumbnail_url)
        result.deletion_url = force_https(result.deletion_url)

    def should_shorten(self) -> bool:
        info = self.task.info
        if info.job == TaskJob.SHARE_URL:
            return False
        settings = info.settings
        limit = settings.auto_shorten_url_length
        return (
            AfterUploadTasks.USE_URL_SHORTENER in settings.after_upload
            or info.job == TaskJob.SHORTEN_URL
            or (limit > 0 and len(info.result.url) > limit)
        )

    def shorten(self) -> None:
        if not self.should_shorten():
            return
        result = self.task.info.result
        shortened = self.shorten_url(result.url)
        if shortened is not None:
            result.shortened_url = shortened.shortened_url
            result.errors.extend(shortened.errors)

    def shorten_url(self, url: str) -> UploadResult | None:
        info = self.task.info
        shortener = self.task.services.uploaders.url_shortener(info.destinations.url_shortener)
        if shortener is None:
            return None
        return shortener.shorten_url(url)

    def share(self) -> None:
        info = self.task.info
        if info.job == TaskJob.SHORTEN_URL:
            return
        if AfterUploadTasks.SHARE_URL not in info.settings.after_upload and info.job != TaskJob.SHARE_URL:
            return
        self.share_url(str(info.result))
        if info.job == TaskJob.SHARE_URL:
            info.result.is_url_expected = False

    def share_url(self, url: str) -> None:
        if not url:
            return
        info = self.task.info
        service = self.task.services.uploaders.sharing_service(info.destinations.url_sharing)
        if service is not None:
            service.share_url(url)

    def copy_to_clipboard(self) -> None:
        info = self.task.info
        settings = info.settings
        if AfterUploadTasks.COPY_URL_TO_CLIPBOARD not in settings.after_upload:
            return
        if settings.clipboard_content_format:
            text = format_upload_info(info, settings.clipboard_content_format)
        else:
            text = str(info.result)
        if text:
            self.task.services.clipboard.copy_text(text)

    def open_url(self) -> None:
        info = self.task.info
        settings = info.settings
        if AfterUploadTasks.OPEN_URL not in settings.after_upload:
            return
        if settings.open_url_format:
            url = format_upload_info(info, settings.open_url_format)
        else:
            url = str(info.result)
        if url:
            self.task.services.desktop.open_url(url)

    def show_qr_code(self) -> None:
        info = self.task.info
        if AfterUploadTasks.SHOW_QR_CODE in info.settings.after_upload:
            self.task.on_show_qr_code(str(info.result))
