"""Shell and filesystem helpers shared by the collectors.

None of these raise: a failed command or unreadable file comes back as
None (or an empty list) and the caller decides how to degrade.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

Command = Union[str, Sequence[str]]


def _log(msg: str) -> None:
    print(msg, flush=True)


def run_command(command: Command, timeout_ms: int = 5000) -> Optional[str]:
    """Run a command and return its stripped stdout.

    String commands go through the shell so pipes work; sequences are
    executed directly. Returns None on non-zero exit, timeout or OS error.
    """
    try:
        result = subprocess.run(
            command,
            shell=isinstance(command, str),
            capture_output=True,
            text=True,
            timeout=timeout_ms / 1000.0,
        )
    except subprocess.TimeoutExpired:
        _log(f"[command] Timeout after {timeout_ms}ms: {command}")
        return None
    except (OSError, ValueError) as exc:
        _log(f"[command] Failed to run {command}: {exc}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def read_text_file(path: Union[str, Path]) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def list_directory(path: Union[str, Path]) -> List[str]:
    """Names in a directory, sorted; empty if it cannot be listed."""
    try:
        return sorted(entry.name for entry in Path(path).iterdir())
    except OSError:
        return []
