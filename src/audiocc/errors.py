"""Error types raised by audiocc.

Filesystem failures are not wrapped: they propagate as the built-in
``OSError`` raised by ``os``, ``shutil`` or ``open``.
"""

from typing import List, Optional


class AudioccError(Exception):
    """Base class for all audiocc errors."""
    pass


class WalkError(AudioccError):
    """Raised when a directory tree cannot be traversed at all."""
    pass


class NotFoundError(AudioccError, FileNotFoundError):
    """Raised when a file is required but absent."""
    pass


class Canceled(AudioccError):
    """Raised when an external process is cancelled or its deadline expires."""
    pass


class ProbeError(AudioccError):
    """Raised when ffprobe fails or its output cannot be parsed."""

    def __init__(self, path: str, message: str, stderr: str = ""):
        self.path = path
        self.stderr = stderr
        detail = f"{message}: {stderr}" if stderr else message
        super().__init__(f"{path}: {detail}")


class TranscodeError(AudioccError):
    """Raised when ffmpeg exits non-zero. Carries stderr verbatim."""

    def __init__(self, argv: List[str], returncode: Optional[int], stderr: str):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"exit status {returncode}: {stderr}")
