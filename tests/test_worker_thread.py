from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys


def _run_offscreen(script: str, tmp_path: Path) -> subprocess.CompletedProcess:
    repo_root = Path(__file__).resolve().parents[1]
    env = os.environ.copy()
    env["PYTHONPATH"] = str(repo_root / "src")
    env["QT_QPA_PLATFORM"] = "offscreen"
    env["SHARETASK_TMP"] = str(tmp_path)
    return subprocess.run(
        [sys.executable, "-c", script],
        cwd=repo_root,
        env=env,
        capture_output=True,
        text=True,
        timeout=30,
    )


_PRELUDE = """
import os
import threading
from pathlib import Path
from PySide6.QtCore import QCoreApplication, QTimer
from sharetask.core.collaborators import Clipboard, Prompts, Uploader, UploaderFactory
from sharetask.core.debug_log import DebugLogger
from sharetask.core.settings import AfterUploadTasks, TaskSettings
from sharetask.core.upload_result import UploadResult
from sharetask.runtime.services import TaskServices
from sharetask.runtime.worker_task import WorkerTask

tmp = Path(os.environ["SHARETASK_TMP"])


class SlowUploader(Uploader):
    def upload(self, stream, file_name):
        self.upload_thread = threading.current_thread()
        sink = open(os.devnull, "wb")
        try:
            self.transfer(stream, sink, 5)
        finally:
            sink.close()
        return UploadResult(url="https://files.example/async")


class Factory(UploaderFactory):
    def file_uploader(self, destination):
        return SlowUploader()


class NullClipboard(Clipboard):
    def clear(self):
        pass

    def copy_text(self, text):
        pass


app = QCoreApplication([])
services = TaskServices(
    uploaders=Factory(),
    clipboard=NullClipboard(),
    prompts=Prompts(),
    logger=DebugLogger(tmp / "debug_log.txt"),
)
settings = TaskSettings(capture_folder=str(tmp / "captures"), after_upload=AfterUploadTasks.NONE)
events = []
on_main = []


def record(name):
    def handler(*args):
        events.append(name)
        on_main.append(threading.current_thread() is threading.main_thread())
    return handler
"""


def test_background_task_delivers_events_on_owning_thread(tmp_path: Path) -> None:
    script = _PRELUDE + """
task = WorkerTask.create_text_upload_task("hello", settings, services)
task.relay.status_changed.connect(record("status"))
task.relay.upload_started.connect(record("started"))
task.relay.upload_progress_changed.connect(record("progress"))
task.relay.upload_completed.connect(record("completed"))
task.relay.upload_completed.connect(lambda t: app.quit())
QTimer.singleShot(15000, app.quit)
task.start()
app.exec()
print("events", events[0], events[-1], events.count("completed"), "started" in events, "progress" in events)
print("main_thread", all(on_main))
print("result", task.info.result.url, task.status.value, task.is_busy)
"""
    completed = _run_offscreen(script, tmp_path)
    assert completed.returncode == 0, completed.stderr or completed.stdout
    assert "events status completed 1 True True" in completed.stdout
    assert "main_thread True" in completed.stdout
    assert "result https://files.example/async completed False" in completed.stdout


def test_background_task_stopped_while_queued_never_starts(tmp_path: Path) -> None:
    script = _PRELUDE + """
task = WorkerTask.create_text_upload_task("hello", settings, services)
task.relay.upload_completed.connect(record("completed"))
task.stop()
task.start()
QTimer.singleShot(200, app.quit)
app.exec()
print("stopped", events, task.status.value, task.info.status_text)
"""
    completed = _run_offscreen(script, tmp_path)
    assert completed.returncode == 0, completed.stderr or completed.stdout
    assert "stopped ['completed'] completed Stopped" in completed.stdout
