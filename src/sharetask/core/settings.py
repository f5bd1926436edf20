from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Flag, auto
from pathlib import Path
import json
from typing import TYPE_CHECKING, Any
from appdirs import user_config_dir, user_data_dir, user_log_dir

from sharetask.core.file_actions import ExternalProgram

if TYPE_CHECKING:
    from sharetask.core.collaborators import FileAction

APP_NAME = "ShareTask"

# Destination value meaning "hand this kind of data to the file uploader".
FILE_UPLOADER = "file_uploader"

DEFAULT_MAX_UPLOAD_FAIL_RETRY = 1
DEFAULT_BUFFER_SIZE_POWER = 5
DEFAULT_NAME_PATTERN = "{date}_{time}"

def _config_path() -> Path:
    cfg_dir = Path(user_config_dir(appname=APP_NAME, appauthor=False))
    cfg_dir.mkdir(parents=True, exist_ok=True)
    return cfg_dir / "settings.json"

def default_capture_folder() -> str:
    return str(Path(user_data_dir(appname=APP_NAME, appauthor=False)) / "Captures")

def default_log_path() -> Path:
    return Path(user_log_dir(appname=APP_NAME, appauthor=False)) / "debug_log.txt"


class AfterCaptureTasks(Flag):
    NONE = 0
    ADD_IMAGE_EFFECTS = auto()
    ANNOTATE_IMAGE = auto()
    COPY_IMAGE_TO_CLIPBOARD = auto()
    SEND_IMAGE_TO_PRINTER = auto()
    SAVE_IMAGE_TO_FILE = auto()
    SAVE_IMAGE_TO_FILE_WITH_DIALOG = auto()
    SAVE_THUMBNAIL_IMAGE_TO_FILE = auto()
    PERFORM_ACTIONS = auto()
    COPY_FILE_TO_CLIPBOARD = auto()
    COPY_FILE_PATH_TO_CLIPBOARD = auto()
    SHOW_IN_EXPLORER = auto()
    SHOW_BEFORE_UPLOAD_WINDOW = auto()
    UPLOAD_IMAGE_TO_HOST = auto()
    DELETE_FILE = auto()


class AfterUploadTasks(Flag):
    NONE = 0
    SHOW_QR_CODE = auto()
    USE_URL_SHORTENER = auto()
    SHARE_URL = auto()
    COPY_URL_TO_CLIPBOARD = auto()
    OPEN_URL = auto()


def flags_from_names(flag_type: type[Flag], names: list[str]) -> Flag:
    value = flag_type(0)
    for name in names:
        try:
            value |= flag_type[name.upper()]
        except KeyError as e:
            raise ValueError(f"Unknown {flag_type.__name__} value: {name}") from e
    return value

def flags_to_names(value: Flag) -> list[str]:
    return [m.name for m in type(value) if m.value and m in value]


@dataclass(frozen=True)
class UploadDestinations:
    """Destination identifiers per content kind, resolved by the uploader factory."""
    image: str = FILE_UPLOADER
    text: str = FILE_UPLOADER
    file: str = ""
    image_file: str = ""
    text_file: str = ""
    url_shortener: str = ""
    url_sharing: str = ""


@dataclass(frozen=True)
class TaskSettings:
    """Immutable configuration snapshot captured when a task is created."""
    destinations: UploadDestinations = field(default_factory=UploadDestinations)
    use_secondary_uploaders: bool = False
    secondary_image_uploaders: tuple[str, ...] = ()
    secondary_text_uploaders: tuple[str, ...] = ()
    secondary_file_uploaders: tuple[str, ...] = ()

    after_capture: AfterCaptureTasks = (
        AfterCaptureTasks.COPY_IMAGE_TO_CLIPBOARD
        | AfterCaptureTasks.SAVE_IMAGE_TO_FILE
        | AfterCaptureTasks.UPLOAD_IMAGE_TO_HOST
    )
    after_upload: AfterUploadTasks = AfterUploadTasks.COPY_URL_TO_CLIPBOARD

    capture_folder: str = field(default_factory=default_capture_folder)
    name_pattern: str = DEFAULT_NAME_PATTERN
    file_upload_use_name_pattern: bool = False
    process_images_during_file_upload: bool = False
    use_after_capture_tasks_during_file_upload: bool = False

    image_format: str = "png"
    image_jpeg_quality: int = 90
    thumbnail_width: int = 200
    thumbnail_height: int = 0

    text_file_extension: str = "txt"
    text_task_save_as_file: bool = True

    auto_clear_clipboard: bool = False
    max_upload_fail_retry: int = DEFAULT_MAX_UPLOAD_FAIL_RETRY
    buffer_size_power: int = DEFAULT_BUFFER_SIZE_POWER
    clipboard_content_format: str = ""
    open_url_format: str = ""
    auto_shorten_url_length: int = 0
    result_force_https: bool = False
    early_copy_url: bool = False
    show_upload_warning: bool = False
    large_file_size_warning: int = 0  # MB, 0 disables
    binary_units: bool = True
    accept_invalid_ssl_certificates: bool = False

    file_actions: tuple[FileAction, ...] = ()

    def __post_init__(self) -> None:
        if self.max_upload_fail_retry < 0:
            raise ValueError("max_upload_fail_retry must be >= 0")

    @property
    def buffer_size(self) -> int:
        return (2 ** self.buffer_size_power) * 1024

    @property
    def large_file_size_bytes(self) -> int:
        unit = 1024 * 1024 if self.binary_units else 1000 * 1000
        return self.large_file_size_warning * unit


@dataclass
class AppSettings:
    """User-persistent settings.

    Stored as JSON in the platform config dir (appdirs). ``task_settings()``
    produces the frozen snapshot a task is created with.
    """
    image_destination: str = FILE_UPLOADER
    text_destination: str = FILE_UPLOADER
    file_destination: str = ""
    image_file_destination: str = ""
    text_file_destination: str = ""
    url_shortener_destination: str = ""
    url_sharing_destination: str = ""
    use_secondary_uploaders: bool = False
    secondary_image_uploaders: list[str] = field(default_factory=list)
    secondary_text_uploaders: list[str] = field(default_factory=list)
    secondary_file_uploaders: list[str] = field(default_factory=list)
    after_capture: list[str] = field(default_factory=lambda: flags_to_names(TaskSettings.after_capture))
    after_upload: list[str] = field(default_factory=lambda: flags_to_names(TaskSettings.after_upload))
    capture_folder: str = ""
    name_pattern: str = DEFAULT_NAME_PATTERN
    file_upload_use_name_pattern: bool = False
    image_format: str = "png"
    text_file_extension: str = "txt"
    text_task_save_as_file: bool = True
    auto_clear_clipboard: bool = False
    max_upload_fail_retry: int = DEFAULT_MAX_UPLOAD_FAIL_RETRY
    buffer_size_power: int = DEFAULT_BUFFER_SIZE_POWER
    clipboard_content_format: str = ""
    open_url_format: str = ""
    auto_shorten_url_length: int = 0
    result_force_https: bool = False
    early_copy_url: bool = False
    show_upload_warning: bool = True
    large_file_size_warning: int = 0
    binary_units: bool = True
    accept_invalid_ssl_certificates: bool = False
    file_actions: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None = None) -> "AppSettings":
        p = path or _config_path()
        if not p.exists():
            return cls()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            known = {f.name for f in fields(cls)}
            return cls(**{k: v for k, v in data.items() if k in known})
        except (OSError, ValueError, TypeError):
            # Unreadable or stale settings fall back to defaults.
            return cls()

    def save(self, path: Path | None = None) -> None:
        p = path or _config_path()
        p.write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")

    def task_settings(self, **overrides: Any) -> TaskSettings:
        values: dict[str, Any] = dict(
            destinations=UploadDestinations(
                image=self.image_destination,
                text=self.text_destination,
                file=self.file_destination,
                image_file=self.image_file_destination or self.file_destination,
                text_file=self.text_file_destination or self.file_destination,
                url_shortener=self.url_shortener_destination,
                url_sharing=self.url_sharing_destination,
            ),
            use_secondary_uploaders=self.use_secondary_uploaders,
            secondary_image_uploaders=tuple(self.secondary_image_uploaders),
            secondary_text_uploaders=tuple(self.secondary_text_uploaders),
            secondary_file_uploaders=tuple(self.secondary_file_uploaders),
            after_capture=flags_from_names(AfterCaptureTasks, self.after_capture),
            after_upload=flags_from_names(AfterUploadTasks, self.after_upload),
            capture_folder=self.capture_folder or default_capture_folder(),
            name_pattern=self.name_pattern,
            file_upload_use_name_pattern=self.file_upload_use_name_pattern,
            image_format=self.image_format,
            text_file_extension=self.text_file_extension,
            text_task_save_as_file=self.text_task_save_as_file,
            auto_clear_clipboard=self.auto_clear_clipboard,
            max_upload_fail_retry=max(0, int(self.max_upload_fail_retry)),
            buffer_size_power=self.buffer_size_power,
            clipboard_content_format=self.clipboard_content_format,
            open_url_format=self.open_url_format,
            auto_shorten_url_length=self.auto_shorten_url_length,
            result_force_https=self.result_force_https,
            early_copy_url=self.early_copy_url,
            show_upload_warning=self.show_upload_warning,
            large_file_size_warning=self.large_file_size_warning,
            binary_units=self.binary_units,
            accept_invalid_ssl_certificates=self.accept_invalid_ssl_certificates,
            file_actions=tuple(ExternalProgram.from_dict(a) for a in self.file_actions),
        )
        values.update(overrides)
        return TaskSettings(**values)
