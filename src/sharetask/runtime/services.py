from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Callable

from sharetask.core.collaborators import (
    Clipboard,
    Desktop,
    Downloader,
    ImageProcessor,
    Prompts,
    UploaderFactory,
)
from sharetask.core.debug_log import DebugLogger
from sharetask.core.settings import default_log_path
from sharetask.runtime.desktop import QtClipboard, QtDesktop, QtImageProcessor, UrllibDownloader


@dataclass
class TaskServices:
    """Collaborators a task talks to. Share one instance across tasks."""
    uploaders: UploaderFactory = field(default_factory=UploaderFactory)
    image_processor: ImageProcessor = field(default_factory=QtImageProcessor)
    clipboard: Clipboard = field(default_factory=QtClipboard)
    desktop: Desktop = field(default_factory=QtDesktop)
    downloader: Downloader = field(default_factory=UrllibDownloader)
    prompts: Prompts = field(default_factory=Prompts)
    logger: DebugLogger = field(default_factory=lambda: DebugLogger(default_log_path()))
    sleep: Callable[[float], None] = time.sleep
