"""Runs the external OCR executable as a child process."""

from __future__ import annotations

import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from docrepo.core.errors import OperationCancelled
from docrepo.core.logging import get_logger

logger = get_logger(__name__)

TIMEOUT_EXIT_CODE = -1


@dataclass(slots=True, frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str


class ProcessInvoker:
    """Start a process, wait for it, and honour a timeout and a cancellation event."""

    poll_interval: float = 0.25

    def run(
        self,
        executable: str,
        args: Sequence[str],
        working_dir: Path,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ProcessResult:
        command = [executable, *args]
        logger.debug("Running %s in %s", command, working_dir)
        deadline = time.monotonic() + timeout if timeout else None
        with subprocess.Popen(
            command,
            cwd=working_dir,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        ) as process:
            while True:
                try:
                    stdout, stderr = process.communicate(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.is_set():
                        process.kill()
                        process.communicate()
                        raise OperationCancelled(f"{executable} cancelled")
                    if deadline is not None and time.monotonic() >= deadline:
                        process.kill()
                        stdout, stderr = process.communicate()
                        logger.warning("%s timed out after %ss", executable, timeout)
                        return ProcessResult(
                            exit_code=TIMEOUT_EXIT_CODE,
                            stdout=stdout or "",
                            stderr=f"{stderr or ''}\nTimed out after {timeout}s",
                        )
        return ProcessResult(exit_code=process.returncode, stdout=stdout or "", stderr=stderr or "")


__all__ = ["ProcessInvoker", "ProcessResult", "TIMEOUT_EXIT_CODE"]
