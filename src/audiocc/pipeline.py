"""
Library pipeline: walk -> bundle -> probe -> cover art -> transcode -> place.

Each bundle (the audio files of one directory) is processed strictly in
order inside its own scratch directory; bundles may run in parallel.
A failing bundle is logged and recorded, and the run moves on.
"""

import dataclasses
import logging
import os
import re
import shutil
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol, Set

from audiocc.config import Config
from audiocc.errors import AudioccError, Canceled
from audiocc.library.bundle import bundle
from audiocc.library.fsutil import copy_file, list_audio, list_image, nth_file_size
from audiocc.library.place import Indexer, merge, tag_index
from audiocc.probe.ffprobe import FFprobe, Tags, TrackProbe, parse_number
from audiocc.transcode.ffmpeg import FFmpeg, TranscodeJob

logger = logging.getLogger(__name__)

# Optimized cover file name, in scratch and in the placed folder
COVER_NAME = "cover.jpg"


class Prober(Protocol):
    def get_data(self, path: str, cancel=None, deadline=None) -> TrackProbe:
        ...


class Transcoder(Protocol):
    def optimize_cover_art(self, src: str, dst: str, cancel=None, deadline=None) -> str:
        ...

    def extract_cover_art(self, src: str, dst: str, cancel=None, deadline=None) -> str:
        ...

    def to_mp3(self, job: TranscodeJob, cancel=None, deadline=None) -> str:
        ...


@dataclass
class ProcessingStats:
    """Statistics for a processing run."""
    bundles_total: int = 0
    bundles_done: int = 0
    files_transcoded: int = 0
    destinations: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def sanitize_component(name: str) -> str:
    """Make a string safe as a single file or folder name."""
    name = re.sub(r'[<>:"/\\|?*]', "_", name)
    name = name.strip(". ")
    name = re.sub(r"\s+", " ", name)
    return name


def default_destination(tags: Tags, unknown_artist: str = "Unknown Artist",
                        unknown_album: str = "Unknown Album") -> str:
    """
    Destination folder, relative to the library root, for a bundle.

    "<artist>/<YYYY> - <album>", or "<artist>/<album>" without a date.
    """
    artist = sanitize_component(tags.artist) or unknown_artist
    album = sanitize_component(tags.album) or unknown_album
    year = tags.date.strip()[:4]
    if year.isdigit():
        album = f"{year} - {album}"
    return os.path.join(artist, album)


def default_file_name(probe: TrackProbe, position: int) -> str:
    """Output name "<disc>-<track:02d> <title>.mp3" for one track."""
    tags = probe.tags
    disc = parse_number(tags.disc) or 1
    track = parse_number(tags.track) or position
    title = sanitize_component(tags.title) or os.path.splitext(os.path.basename(probe.path))[0]
    return f"{disc}-{track:02d} {title}.mp3"


def _unique_name(name: str, used: Set[str]) -> str:
    stem, ext = os.path.splitext(name)
    candidate, x = name, 0
    while candidate.lower() in used:
        x += 1
        candidate = f"{stem} ({x}){ext}"
    used.add(candidate.lower())
    return candidate


def _cleanup_scratch(path: str) -> None:
    """Remove a bundle's scratch directory."""
    try:
        shutil.rmtree(path)
        logger.debug(f"Cleaned up scratch dir: {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to clean up scratch dir {path}: {e}")


class Pipeline:
    """Organizes a source tree of audio into a destination library."""

    def __init__(
        self,
        prober: Prober,
        transcoder: Transcoder,
        quality: str = "v0",
        fix: bool = False,
        embed_cover: bool = True,
        workers: int = 1,
        scratch_prefix: str = ".audiocc-",
        destination: Optional[Callable[[Tags], str]] = None,
        file_name: Optional[Callable[[TrackProbe, int], str]] = None,
        indexer: Indexer = tag_index,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ):
        """
        Args:
            prober: Probe capability (FFprobe or a fake)
            transcoder: Transcode capability (FFmpeg or a fake)
            quality: "copy", "320" or "v0"
            fix: Use the two-pass fix mode for every file
            embed_cover: Select, optimize and embed cover art
            workers: Bundles processed concurrently
            scratch_prefix: Prefix of per-bundle scratch dirs in the destination root
            destination: Maps bundle tags to a folder relative to the destination root
            file_name: Maps (probe, 1-based position) to an output file name
            indexer: Index-key function used when merging into existing folders
            cancel: Event that aborts running external processes
            deadline: Absolute time.monotonic() after which processes are aborted
        """
        self.prober = prober
        self.transcoder = transcoder
        self.quality = quality
        self.fix = fix
        self.embed_cover = embed_cover
        self.workers = max(1, workers)
        self.scratch_prefix = scratch_prefix
        self.destination = destination or default_destination
        self.file_name = file_name or default_file_name
        self.indexer = indexer
        self.cancel = cancel if cancel is not None else threading.Event()
        self.deadline = deadline

        self._stats_lock = threading.Lock()
        self._dst_locks_guard = threading.Lock()
        self._dst_locks = {}

    @classmethod
    def from_config(cls, config: Config, **overrides) -> "Pipeline":
        """Build a pipeline with ffprobe/ffmpeg adapters from config values."""
        unknown_artist = config.get("library", "unknown_artist", "Unknown Artist")
        unknown_album = config.get("library", "unknown_album", "Unknown Album")

        kwargs = dict(
            prober=FFprobe(config.get("tools", "ffprobe", "ffprobe")),
            transcoder=FFmpeg(
                config.get("tools", "ffmpeg", "ffmpeg"),
                cover_width=config.get("transcode", "cover_width", 500),
                cover_qscale=config.get("transcode", "cover_qscale", 2),
            ),
            quality=config.get("transcode", "quality", "v0"),
            fix=config.get("transcode", "fix", False),
            embed_cover=config.get("transcode", "embed_cover", True),
            workers=config.get("pipeline", "workers", 1),
            scratch_prefix=config.get("pipeline", "scratch_prefix", ".audiocc-"),
            destination=lambda tags: default_destination(tags, unknown_artist, unknown_album),
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    def run(self, root: str, dest_root: str) -> ProcessingStats:
        """
        Process every bundle of audio under root into dest_root.

        Returns:
            ProcessingStats for the run

        Raises:
            WalkError: If root cannot be walked
            Canceled: If the run was cancelled; remaining bundles are skipped
            KeyboardInterrupt: After cancelling running and queued bundles
        """
        stats = ProcessingStats()
        files = list_audio(root)
        audio_dirs = {os.path.dirname(os.path.join(root, p)) for p in files}

        bundles = []
        bundle(root, files, lambda r: bundles.append([files[i] for i in r]))
        stats.bundles_total = len(bundles)
        logger.info(f"Found {len(files)} audio files in {len(bundles)} folders under {root}")

        os.makedirs(dest_root, exist_ok=True)

        if self.workers == 1:
            for paths in bundles:
                self._run_bundle(root, paths, dest_root, audio_dirs, stats)
            return stats

        canceled = None
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = [
                pool.submit(self._run_bundle, root, paths, dest_root, audio_dirs, stats)
                for paths in bundles
            ]
            try:
                for future in as_completed(futures):
                    try:
                        future.result()
                    except Canceled as e:
                        self._abort(futures)
                        canceled = canceled or e
            except BaseException:
                # KeyboardInterrupt: the pool joins on exit, so stop it first
                self._abort(futures)
                raise

        if canceled is not None:
            raise canceled
        return stats

    def _abort(self, futures: List[Future]) -> None:
        """Terminate running external processes and drop queued bundles."""
        if not self.cancel.is_set():
            logger.warning("Cancelling remaining bundles")
        self.cancel.set()
        for f in futures:
            f.cancel()

    def _run_bundle(self, root: str, paths: List[str], dest_root: str,
                    audio_dirs: Set[str], stats: ProcessingStats) -> None:
        """Process one bundle, recording its outcome in stats."""
        src_dir = os.path.dirname(os.path.join(root, paths[0]))
        if self.cancel.is_set():
            raise Canceled(f"skipped {src_dir}")

        try:
            final = self.process_bundle(root, paths, dest_root, audio_dirs)
        except Canceled:
            logger.warning(f"Canceled: {src_dir}")
            raise
        except (AudioccError, OSError, ValueError) as e:
            message = f"{type(e).__name__}: {src_dir}: {e}"
            logger.error(f"Bundle failed: {message}")
            with self._stats_lock:
                stats.errors.append(message)
            return

        with self._stats_lock:
            stats.bundles_done += 1
            stats.files_transcoded += len(paths)
            stats.destinations.append(final)

    def process_bundle(self, root: str, paths: List[str], dest_root: str,
                       audio_dirs: Optional[Iterable[str]] = None) -> str:
        """
        Probe, transcode and place one bundle.

        Args:
            root: Walked source root
            paths: Bundle members, relative to root, in discovery order
            dest_root: Library root the bundle is placed under
            audio_dirs: Every directory holding audio in this run; image
                        search skips subdirectories that are bundles of their own

        Returns:
            Final destination folder

        Raises:
            ProbeError, TranscodeError, OSError: The bundle is abandoned
            Canceled: External processes were cancelled
        """
        src_dir = os.path.dirname(os.path.join(root, paths[0]))
        logger.info(f"Processing {src_dir} ({len(paths)} files)")

        scratch = tempfile.mkdtemp(dir=dest_root, prefix=self.scratch_prefix)
        try:
            probes = [
                self.prober.get_data(os.path.join(root, p), cancel=self.cancel, deadline=self.deadline)
                for p in paths
            ]

            cover = None
            if self.embed_cover:
                cover = self.select_cover(src_dir, probes, scratch, set(audio_dirs or ()))

            out_dir = os.path.join(scratch, "out")
            os.mkdir(out_dir)

            used: Set[str] = set()
            for position, probe in enumerate(probes, 1):
                name = _unique_name(self.file_name(probe, position), used)
                job = TranscodeJob(
                    src=probe.path,
                    dst=os.path.join(out_dir, name),
                    quality=self.quality,
                    tags=self._resolve_tags(probe, position),
                    cover=cover,
                    fix=self.fix,
                )
                logger.debug(f"Transcoding {probe.path} -> {name}")
                self.transcoder.to_mp3(job, cancel=self.cancel, deadline=self.deadline)

            # Placed albums keep their art next to the tracks
            if cover:
                copy_file(cover, os.path.join(out_dir, COVER_NAME))

            dst = os.path.join(dest_root, self.destination(probes[0].tags))
            final = self._place(out_dir, dst)
        finally:
            _cleanup_scratch(scratch)

        logger.info(f"✅ {src_dir} -> {final}")
        return final

    def _resolve_tags(self, probe: TrackProbe, position: int) -> Tags:
        """Tags to write: probed values, with track/title filled in when blank."""
        tags = probe.tags
        track = tags.track if parse_number(tags.track) is not None else str(position)
        title = tags.title or os.path.splitext(os.path.basename(probe.path))[0]
        return dataclasses.replace(tags, track=track, title=title)

    def select_cover(self, src_dir: str, probes: List[TrackProbe], scratch: str,
                     audio_dirs: Optional[Set[str]] = None) -> Optional[str]:
        """
        Pick the largest candidate cover and optimize it into scratch.

        Candidates are the images in src_dir (including subdirectories that
        hold no audio of their own), then pictures extracted from each
        probed file that reports an embedded image. Ties go to the earlier
        candidate.

        Returns:
            Path of the optimized cover.jpg, or None without candidates
        """
        audio_dirs = audio_dirs or set()
        candidates = []
        for img in list_image(src_dir):
            if self._inside_other_bundle(src_dir, img, audio_dirs):
                continue
            candidates.append(os.path.join(src_dir, img))

        for i, probe in enumerate(probes):
            width, height, present = probe.embedded_image()
            if not present:
                continue
            ext = ".png" if probe.streams[1].codec_name == "png" else ".jpg"
            extracted = os.path.join(scratch, f"embedded-{i}{ext}")
            logger.debug(f"Extracting {width}x{height} embedded image from {probe.path}")
            self.transcoder.extract_cover_art(
                probe.path, extracted, cancel=self.cancel, deadline=self.deadline
            )
            candidates.append(extracted)

        if not candidates:
            logger.debug(f"No cover art for {src_dir}")
            return None

        best = nth_file_size(candidates, smallest=False)
        cover = os.path.join(scratch, COVER_NAME)
        self.transcoder.optimize_cover_art(best, cover, cancel=self.cancel, deadline=self.deadline)
        logger.debug(f"Cover for {src_dir}: {best}")
        return cover

    @staticmethod
    def _inside_other_bundle(src_dir: str, rel_img: str, audio_dirs: Set[str]) -> bool:
        """True if rel_img sits in a subdirectory of src_dir that holds audio."""
        d = os.path.dirname(os.path.join(src_dir, rel_img))
        while d != src_dir and d.startswith(src_dir):
            if d in audio_dirs:
                return True
            d = os.path.dirname(d)
        return False

    def _place(self, out_dir: str, dst: str) -> str:
        """Merge out_dir into dst, one placement per destination at a time."""
        key = os.path.abspath(dst)
        with self._dst_locks_guard:
            lock = self._dst_locks.setdefault(key, threading.Lock())
        with lock:
            return merge(out_dir, dst, self.indexer)
