"""
ffmpeg adapter: cover-art optimization and MP3 production.

The argument vectors built here are the wire contract with ffmpeg:

    cover:  ffmpeg -i <in> -y -qscale:v 2 -vf scale=500:-1 <out>
    mp3:    ffmpeg -i <in> [-i <cover>] -map 0:a -c:a <codec...>
                   -id3v2_version 4 -metadata artist=... (album, disc,
                   track, title, date) [-map 1:v -c:v copy
                   -metadata:s:v title=... -metadata:s:v comment=...]
                   -y <out>
    fix:    ffmpeg -i <in> -map 0:a -c:a <codec...> -map_metadata -1
                   -y <stem>-fix.mp3, then the mp3 form with -c:a copy
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from audiocc.errors import Canceled, TranscodeError
from audiocc.probe.ffprobe import Tags
from audiocc.process import run_process

logger = logging.getLogger(__name__)

COVER_WIDTH = 500
COVER_QSCALE = 2

# Tag order as written to the id3v2 frame list
METADATA_FIELDS = ("artist", "album", "disc", "track", "title", "date")


@dataclass
class TranscodeJob:
    """
    One source file to MP3.

    quality is "copy" (stream copy), "320" (CBR 320k) or anything else
    for LAME V0. fix re-encodes once without metadata before tagging.
    """

    src: str
    dst: str
    quality: str = "v0"
    tags: Optional[Tags] = None
    cover: Optional[str] = None
    fix: bool = False

    def __post_init__(self):
        if not self.dst.lower().endswith(".mp3"):
            raise ValueError(f"destination must end in .mp3: {self.dst}")
        if self.fix and self.quality == "copy":
            raise ValueError("fix mode needs an encoding quality, not 'copy'")
        if self.tags is None:
            self.tags = Tags()

    @property
    def fix_path(self) -> str:
        """Intermediate file written by the fix pass."""
        return f"{os.path.splitext(self.dst)[0]}-fix.mp3"


def codec_args(quality: str) -> List[str]:
    """Audio codec clause for a quality setting."""
    if quality == "copy":
        return ["-c:a", "copy"]
    if quality == "320":
        return ["-c:a", "libmp3lame", "-b:a", "320k"]
    return ["-c:a", "libmp3lame", "-qscale:a", "0"]


def build_mp3_args(binary: str, src: str, dst: str, quality: str,
                   tags: Tags, cover: Optional[str] = None) -> List[str]:
    """Argument vector for the tagging (standard) pass."""
    args = [binary, "-i", src]
    if cover:
        args += ["-i", cover]

    args += ["-map", "0:a"]
    args += codec_args(quality)

    args += ["-id3v2_version", "4"]
    for name in METADATA_FIELDS:
        args += ["-metadata", f"{name}={getattr(tags, name)}"]

    if cover:
        args += [
            "-map", "1:v", "-c:v", "copy",
            "-metadata:s:v", "title=Album cover",
            "-metadata:s:v", "comment=Cover (Front)",
        ]

    args += ["-y", dst]
    return args


def build_fix_args(binary: str, src: str, dst: str, quality: str) -> List[str]:
    """Argument vector for the metadata-stripping re-encode of the fix pass."""
    return (
        [binary, "-i", src, "-map", "0:a"]
        + codec_args(quality)
        + ["-map_metadata", "-1", "-y", dst]
    )


def build_cover_args(binary: str, src: str, dst: str,
                     width: int = COVER_WIDTH, qscale: int = COVER_QSCALE) -> List[str]:
    """Argument vector for rescaling a cover image; format follows dst's extension."""
    return [binary, "-i", src, "-y", "-qscale:v", str(qscale),
            "-vf", f"scale={width}:-1", dst]


def build_extract_args(binary: str, src: str, dst: str) -> List[str]:
    """Argument vector for copying an embedded picture stream out of an audio file."""
    return [binary, "-i", src, "-an", "-c:v", "copy", "-y", dst]


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
        logger.debug(f"Removed partial output: {path}")
    except FileNotFoundError:
        pass


class FFmpeg:
    """Transcoder backed by the ffmpeg binary."""

    def __init__(self, binary: str = "ffmpeg",
                 cover_width: int = COVER_WIDTH, cover_qscale: int = COVER_QSCALE):
        self.bin = binary
        self.cover_width = cover_width
        self.cover_qscale = cover_qscale

    def _exec(self, args: List[str], output: str, cancel=None, deadline=None) -> str:
        """
        Run one ffmpeg invocation producing output.

        Raises:
            TranscodeError: On non-zero exit (stderr kept verbatim)
            Canceled: If cancelled; the partial output is unlinked first
        """
        try:
            result = run_process(args, cancel=cancel, deadline=deadline)
        except Canceled:
            _remove_partial(output)
            raise
        except OSError as e:
            raise TranscodeError(args, None, f"cannot run {self.bin}: {e}")

        if result.returncode != 0:
            logger.error(f"ffmpeg failed with return code {result.returncode}: {output}")
            logger.error(f"ffmpeg stderr: {result.stderr if result.stderr else '(no stderr)'}")
            raise TranscodeError(args, result.returncode, result.stderr)

        return result.stdout

    def optimize_cover_art(self, src: str, dst: str, cancel=None, deadline=None) -> str:
        """Rescale src to the configured width and re-encode it at dst."""
        args = build_cover_args(self.bin, src, dst, self.cover_width, self.cover_qscale)
        self._exec(args, dst, cancel, deadline)
        return dst

    def extract_cover_art(self, src: str, dst: str, cancel=None, deadline=None) -> str:
        """Write the picture stream embedded in audio file src to dst."""
        self._exec(build_extract_args(self.bin, src, dst), dst, cancel, deadline)
        return dst

    def to_mp3(self, job: TranscodeJob, cancel=None, deadline=None) -> str:
        """
        Produce job.dst.

        With job.fix, the source is first re-encoded without metadata into
        job.fix_path; the tagging pass then stream-copies that file so the
        audio is encoded only once. The intermediate is removed on success
        and kept on failure.

        Returns:
            job.dst
        """
        src, quality = job.src, job.quality

        if job.fix:
            args = build_fix_args(self.bin, src, job.fix_path, quality)
            logger.debug(f"Fix pass: {job.src} -> {job.fix_path}")
            self._exec(args, job.fix_path, cancel, deadline)
            src, quality = job.fix_path, "copy"

        args = build_mp3_args(self.bin, src, job.dst, quality, job.tags, job.cover)
        self._exec(args, job.dst, cancel, deadline)

        if job.fix:
            os.remove(job.fix_path)

        logger.debug(f"Wrote {job.dst}")
        return job.dst
