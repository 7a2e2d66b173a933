"""
External process runner for ffmpeg / ffprobe.

Children run in their own session so that cancellation can terminate the
whole process group. No timeout is imposed unless the caller passes a
deadline.
"""

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from audiocc.errors import Canceled, NotFoundError

logger = logging.getLogger(__name__)

# Seconds between cancel/deadline checks while a child runs
POLL_INTERVAL = 0.2


@dataclass
class ProcessResult:
    """Captured outcome of a finished child process."""

    returncode: int
    stdout: str
    stderr: str


def which(name: str) -> str:
    """
    Resolve a binary on PATH.

    Raises:
        NotFoundError: If the binary is not installed.
    """
    path = shutil.which(name)
    if path is None:
        raise NotFoundError(f"{name} not found on system")
    return path


def _terminate_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        os.killpg(proc.pid, signal.SIGKILL)
        proc.communicate()


def run_process(
    argv: List[str],
    cancel: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
) -> ProcessResult:
    """
    Run a child process to completion, capturing stdout and stderr as text.

    Args:
        argv: Program and arguments
        cancel: Event that, once set, terminates the child
        deadline: Absolute time.monotonic() value after which the child
                  is terminated

    Returns:
        ProcessResult (non-zero exit codes are returned, not raised)

    Raises:
        Canceled: If cancel was set or the deadline passed
        OSError: If the program could not be started
    """
    logger.debug(f"exec: {' '.join(argv)}")

    proc = subprocess.Popen(
        argv,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        start_new_session=True,
    )

    while True:
        if cancel is not None and cancel.is_set():
            _terminate_group(proc)
            raise Canceled(f"{argv[0]} canceled")
        if deadline is not None and time.monotonic() >= deadline:
            _terminate_group(proc)
            raise Canceled(f"{argv[0]} exceeded deadline")

        try:
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            continue
        except BaseException:
            # KeyboardInterrupt and friends: never leave the group running
            _terminate_group(proc)
            raise

    return ProcessResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)


def check_tools(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """
    Fail fast if ffmpeg/ffprobe aren't available, logging the ffmpeg version.

    Raises:
        NotFoundError: If either binary is missing.
    """
    for tool in (ffmpeg, ffprobe):
        which(tool)

    result = run_process([ffmpeg, "-version"])
    version = result.stdout.split("\n")[0] if result.stdout else "(unknown version)"
    logger.info(f"Using {version}")
