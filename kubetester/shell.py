"""Running external commands with inherited output streams."""

from __future__ import annotations

import subprocess


def execute_command(name: str, *args: str) -> None:
    """Run ``name`` with ``args``, sharing this process's stdout and stderr.

    Raises :class:`subprocess.CalledProcessError` if the command exits with a
    non-zero status, and :class:`FileNotFoundError` if it cannot be started.
    """
    subprocess.run([name, *args], check=True)