"""
ffprobe adapter: technical metadata and tags for one audio file.

Wire contract:
    ffprobe -v quiet -print_format json -show_streams -show_format <file>

Missing JSON fields become empty strings / zeros; tags are never None.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

from audiocc.errors import ProbeError
from audiocc.process import run_process

logger = logging.getLogger(__name__)

# Alternate spellings emitted by some muxers
TAG_ALIASES = {
    "totaltracks": "tracktotal",
    "totaldiscs": "disctotal",
    "tracknumber": "track",
    "discnumber": "disc",
}


def parse_number(value: str) -> Optional[int]:
    """
    Parse the leading number of a track/disc tag ("3", "3/12", " 03 ").

    Returns:
        The number, or None for blank or malformed input
    """
    head = (value or "").split("/", 1)[0].strip()
    try:
        return int(head)
    except ValueError:
        return None


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Tags:
    """Container-level tags. Every field is a string, empty when absent."""

    artist: str = ""
    album: str = ""
    disc: str = ""
    disctotal: str = ""
    track: str = ""
    tracktotal: str = ""
    title: str = ""
    date: str = ""
    genre: str = ""
    comment: str = ""
    encoder: str = ""

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "Tags":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (raw or {}).items():
            key = key.lower()
            key = TAG_ALIASES.get(key, key)
            if key in known and key not in values:
                values[key] = _str(value)
        return cls(**values)


@dataclass
class Stream:
    """One ffprobe stream entry (audio or attached picture)."""

    index: int = 0
    codec_name: str = ""
    codec_type: str = ""
    channels: int = 0
    sample_rate: str = ""
    bit_rate: str = ""
    bits_per_raw_sample: str = ""
    duration: str = ""
    width: int = 0
    height: int = 0
    pix_fmt: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Stream":
        return cls(
            index=_int(raw.get("index")),
            codec_name=_str(raw.get("codec_name")),
            codec_type=_str(raw.get("codec_type")),
            channels=_int(raw.get("channels")),
            sample_rate=_str(raw.get("sample_rate")),
            bit_rate=_str(raw.get("bit_rate")),
            bits_per_raw_sample=_str(raw.get("bits_per_raw_sample")),
            duration=_str(raw.get("duration")),
            width=_int(raw.get("width")),
            height=_int(raw.get("height")),
            pix_fmt=_str(raw.get("pix_fmt")),
        )


@dataclass
class Format:
    """The ffprobe "format" section."""

    filename: str = ""
    nb_streams: int = 0
    format_name: str = ""
    duration: float = 0.0
    size: str = ""
    bit_rate: str = ""
    tags: Tags = field(default_factory=Tags)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "Format":
        raw = raw or {}
        return cls(
            filename=_str(raw.get("filename")),
            nb_streams=_int(raw.get("nb_streams")),
            format_name=_str(raw.get("format_name")),
            duration=_float(raw.get("duration")),
            size=_str(raw.get("size")),
            bit_rate=_str(raw.get("bit_rate")),
            tags=Tags.from_dict(raw.get("tags")),
        )


@dataclass
class TrackProbe:
    """Probe result for one audio file."""

    path: str
    streams: List[Stream] = field(default_factory=list)
    format: Format = field(default_factory=Format)

    @classmethod
    def from_json(cls, path: str, data: Dict[str, Any]) -> "TrackProbe":
        return cls(
            path=path,
            streams=[Stream.from_dict(s) for s in data.get("streams") or []],
            format=Format.from_dict(data.get("format")),
        )

    @property
    def tags(self) -> Tags:
        return self.format.tags

    @property
    def audio(self) -> Stream:
        """First audio stream, or an empty Stream if there is none."""
        for s in self.streams:
            if s.codec_type == "audio":
                return s
        return Stream()

    @property
    def container(self) -> str:
        return self.format.format_name

    @property
    def codec(self) -> str:
        return self.audio.codec_name

    @property
    def channels(self) -> int:
        return self.audio.channels

    @property
    def sample_rate(self) -> int:
        return _int(self.audio.sample_rate)

    @property
    def bit_rate(self) -> int:
        return _int(self.audio.bit_rate) or _int(self.format.bit_rate)

    @property
    def bits_per_raw_sample(self) -> int:
        return _int(self.audio.bits_per_raw_sample)

    @property
    def duration(self) -> float:
        return self.format.duration or _float(self.audio.duration)

    def embedded_image(self) -> Tuple[int, int, bool]:
        """
        Report an embedded cover image from metadata alone.

        Returns:
            (width, height, True) if a second stream with positive
            dimensions exists, else (0, 0, False)
        """
        if len(self.streams) > 1:
            s = self.streams[1]
            if s.width > 0 and s.height > 0:
                return s.width, s.height, True
        return 0, 0, False


class FFprobe:
    """Prober backed by the ffprobe binary."""

    def __init__(self, binary: str = "ffprobe"):
        self.bin = binary

    def args(self, path: str) -> List[str]:
        return [
            self.bin, "-v", "quiet", "-print_format", "json",
            "-show_streams", "-show_format", path,
        ]

    def get_data(self, path: str, cancel=None, deadline=None) -> TrackProbe:
        """
        Probe path.

        Raises:
            ProbeError: If ffprobe fails or prints invalid JSON
            Canceled: If cancel/deadline fires while ffprobe runs
        """
        try:
            result = run_process(self.args(path), cancel=cancel, deadline=deadline)
        except OSError as e:
            raise ProbeError(path, f"cannot run {self.bin}: {e}")

        if result.returncode != 0:
            raise ProbeError(
                path, f"{self.bin} exited with status {result.returncode}", result.stderr
            )

        try:
            data = json.loads(result.stdout)
        except ValueError as e:
            raise ProbeError(path, f"invalid JSON from {self.bin}: {e}")

        if not isinstance(data, dict):
            raise ProbeError(path, f"unexpected JSON from {self.bin}")

        probe = TrackProbe.from_json(path, data)
        logger.debug(
            f"Probed {path}: {probe.container}/{probe.codec}, "
            f"{probe.duration:.1f}s, artist={probe.tags.artist!r}"
        )
        return probe


def embedded_image(probe: TrackProbe) -> Tuple[int, int, bool]:
    """Module-level form of TrackProbe.embedded_image()."""
    return probe.embedded_image()
