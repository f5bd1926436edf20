from __future__ import annotations

from PySide6.QtCore import QObject, Signal, Slot

from sharetask.runtime.workers import TaskWorker


class ProgressRelay(QObject):
    """Task event sink living on the thread that owns the task.

    Worker-thread signals are connected to the ``_relay_*`` slots, so Qt
    queues them onto this object's thread and handlers never run alongside
    the task's stage code. Order of delivery is the order of emission.
    """
    status_changed = Signal(object)
    upload_started = Signal(object)
    upload_progress_changed = Signal(object)
    upload_completed = Signal(object)
    show_qr_code = Signal(str)

    def attach(self, worker: TaskWorker) -> None:
        worker.status_changed.connect(self._relay_status_changed)
        worker.upload_started.connect(self._relay_upload_started)
        worker.upload_progress_changed.connect(self._relay_upload_progress_changed)
        worker.show_qr_code.connect(self._relay_show_qr_code)
        worker.work_finished.connect(self._on_work_finished)

    @Slot(object)
    def _relay_status_changed(self, task) -> None:
        self.status_changed.emit(task)

    @Slot(object)
    def _relay_upload_started(self, task) -> None:
        self.upload_started.emit(task)

    @Slot(object)
    def _relay_upload_progress_changed(self, task) -> None:
        self.upload_progress_changed.emit(task)

    @Slot(str)
    def _relay_show_qr_code(self, text: str) -> None:
        self.show_qr_code.emit(text)

    @Slot(object)
    def _on_work_finished(self, task) -> None:
        task.thread_completed()
