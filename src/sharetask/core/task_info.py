from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import os

from sharetask.core.settings import (
    FILE_UPLOADER,
    AfterCaptureTasks,
    TaskSettings,
    UploadDestinations,
)
from sharetask.core.stop_flag import StopFlag
from sharetask.core.upload_result import UploadResult


class TaskJob(Enum):
    JOB = "job"  # captured or loaded content driven through after-capture tasks
    DATA_UPLOAD = "data_upload"
    FILE_UPLOAD = "file_upload"
    TEXT_UPLOAD = "text_upload"
    SHORTEN_URL = "shorten_url"
    SHARE_URL = "share_url"
    DOWNLOAD_UPLOAD = "download_upload"


class DataType(Enum):
    IMAGE = "image"
    TEXT = "text"
    FILE = "file"
    URL = "url"


class TaskStatus(Enum):
    IN_QUEUE = "in_queue"
    PREPARING = "preparing"
    WORKING = "working"
    STOPPING = "stopping"
    COMPLETED = "completed"
    HISTORY = "history"


# Forward order of the live states; HISTORY sits outside it.
STATUS_ORDER = {
    TaskStatus.IN_QUEUE: 0,
    TaskStatus.PREPARING: 1,
    TaskStatus.WORKING: 2,
    TaskStatus.STOPPING: 3,
    TaskStatus.COMPLETED: 4,
}


@dataclass(frozen=True)
class ProgressSnapshot:
    position: int = 0
    length: int = 0
    speed: float = 0.0  # bytes per second
    elapsed: float = 0.0  # seconds

    @property
    def percentage(self) -> float:
        if self.length <= 0:
            return 0.0
        return min(100.0, 100.0 * self.position / self.length)

    @property
    def remaining(self) -> float:
        if self.speed <= 0 or self.length <= 0:
            return 0.0
        return max(0.0, (self.length - self.position) / self.speed)


@dataclass
class TaskInfo:
    """State shared by every stage of one task.

    - settings: frozen snapshot taken at creation
    - destinations: per-task copy of the upload destinations, replaced on failover
    - result: the single aggregator for this task's upload outcome
    """
    settings: TaskSettings | None
    job: TaskJob = TaskJob.JOB
    data_type: DataType = DataType.FILE
    status_text: str = ""
    _file_path: str = field(default="", repr=False)
    file_name: str = ""
    thumbnail_path: str = ""
    destinations: UploadDestinations = field(default_factory=UploadDestinations)
    result: UploadResult = field(default_factory=UploadResult)
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)
    start_time: datetime | None = None
    upload_time: datetime | None = None
    stop_requested: StopFlag = field(default_factory=StopFlag)
    request_setting_update: StopFlag = field(default_factory=StopFlag)

    def __post_init__(self) -> None:
        if self.settings is not None:
            self.destinations = self.settings.destinations

    @property
    def file_path(self) -> str:
        return self._file_path

    @file_path.setter
    def file_path(self, value: str) -> None:
        self._file_path = value or ""
        if value:
            self.file_name = os.path.basename(value)

    @property
    def end_time(self) -> datetime | None:
        return self.upload_time

    @property
    def is_upload_job(self) -> bool:
        if self.job == TaskJob.JOB:
            return (
                self.settings is not None
                and AfterCaptureTasks.UPLOAD_IMAGE_TO_HOST in self.settings.after_capture
            )
        return self.job in (
            TaskJob.DATA_UPLOAD,
            TaskJob.FILE_UPLOAD,
            TaskJob.TEXT_UPLOAD,
            TaskJob.SHORTEN_URL,
            TaskJob.SHARE_URL,
            TaskJob.DOWNLOAD_UPLOAD,
        )

    @property
    def upload_destination(self) -> DataType:
        """Which uploader kind handles this task's data; URL tasks have none."""
        if self.data_type == DataType.URL:
            return DataType.URL
        if self.data_type == DataType.IMAGE and self.destinations.image != FILE_UPLOADER:
            return DataType.IMAGE
        if self.data_type == DataType.TEXT and self.destinations.text != FILE_UPLOADER:
            return DataType.TEXT
        return DataType.FILE

    @property
    def file_destination(self) -> str:
        if self.data_type == DataType.IMAGE:
            return self.destinations.image_file
        if self.data_type == DataType.TEXT:
            return self.destinations.text_file
        return self.destinations.file
