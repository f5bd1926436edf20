from __future__ import annotations

from PySide6.QtCore import QThread, Signal


class TaskWorker(QThread):
    """Background execution context for a single task."""
    status_changed = Signal(object)
    upload_started = Signal(object)
    upload_progress_changed = Signal(object)
    show_qr_code = Signal(str)
    work_finished = Signal(object)

    def __init__(self, task) -> None:
        super().__init__()
        self.task = task

    def run(self) -> None:
        try:
            self.task.do_work()
        finally:
            self.work_finished.emit(self.task)
