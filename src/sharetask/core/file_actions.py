from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
import shlex
import subprocess
from typing import Any, Mapping

INPUT_TOKEN = "%input"
OUTPUT_TOKEN = "%output"

@dataclass(frozen=True)
class ExternalProgram:
    """A user-configured program run against a task's file after capture.

    ``args`` may reference ``%input`` and ``%output``. When ``output_extension``
    is set the program is expected to write ``<input stem>.<ext>`` next to the
    input, and that file replaces the task's file path.
    """
    name: str
    path: str
    args: str = f'"{INPUT_TOKEN}"'
    output_extension: str = ""
    is_active: bool = True
    timeout_seconds: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExternalProgram":
        if not data.get("name") or not data.get("path"):
            raise ValueError(f"File action needs a name and a program path: {dict(data)}")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def output_path_for(self, file_path: str) -> str:
        if not self.output_extension:
            return file_path
        src = Path(file_path)
        return str(src.with_suffix("." + self.output_extension.lstrip(".")))

    def run(self, file_path: str) -> str:
        output_path = self.output_path_for(file_path)
        args = self.args.replace(INPUT_TOKEN, file_path).replace(OUTPUT_TOKEN, output_path)
        cmd = [self.path, *shlex.split(args)]
        proc = subprocess.run(
            cmd,
            cwd=str(Path(file_path).parent),
            capture_output=True,
            text=True,
            timeout=self.timeout_seconds,
        )
        if proc.returncode != 0:
            raise RuntimeError(
                f"{self.name} failed: {proc.stderr.strip() or f'exit code {proc.returncode}'}"
            )
        if output_path != file_path and Path(output_path).exists():
            return output_path
        return file_path
