from __future__ import annotations

import subprocess
import sys
from pathlib import Path

def open_folder_with_file(path: Path) -> None:
    """Reveal a file in Finder/Explorer; falls back to opening its folder on Linux."""
    if sys.platform == "darwin":
        subprocess.run(["open", "-R", str(path)], check=False)
    elif sys.platform.startswith("win"):
        subprocess.run(["explorer", f"/select,{path}"], check=False)
    else:
        subprocess.run(["xdg-open", str(path.parent)], check=False)
