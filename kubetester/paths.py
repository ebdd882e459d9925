"""Locating regular files on the ``PATH``."""

from __future__ import annotations

import os


class FileNotFoundInPathError(FileNotFoundError):
    """Raised when a file cannot be found in any ``PATH`` directory."""

    def __init__(self, file: str = "") -> None:
        super().__init__("file not found in $PATH")
        self.file = file


def look_path(file: str) -> str:
    """Return the path of the first regular ``file`` found on ``PATH``.

    Unlike executable lookup, any file that exists and is not a directory
    counts. An empty ``PATH`` element stands for the current directory.
    """
    for directory in os.environ.get("PATH", "").split(os.pathsep):
        candidate = os.path.join(directory or ".", file)
        if os.path.exists(candidate) and not os.path.isdir(candidate):
            return candidate
    raise FileNotFoundInPathError(file)