"""
Placement engine: merge a freshly produced folder into its destination
without losing or overwriting audio.

Duplicates are detected by an index key, disc * 1000 + track, computed
from each file by a pluggable indexer.
"""

import logging
import os
import re
import shutil
from typing import Callable

import mutagen

from audiocc.library.fsutil import copy_file, list_audio, list_image, rename_folder
from audiocc.probe.ffprobe import parse_number

logger = logging.getLogger(__name__)

Indexer = Callable[[str], int]

_DISC_TRACK = re.compile(r"^\s*(\d+)\s*[-.]\s*(\d+)")
_TRACK = re.compile(r"^\s*(\d+)")


def index_key(disc: int, track: int) -> int:
    return disc * 1000 + track


def filename_index(path: str) -> int:
    """
    Index key from a file name: "2-05 Title.mp3" -> 2005, "07 x.flac" -> 1007.

    Names without a leading number map to 0.
    """
    stem = os.path.splitext(os.path.basename(path))[0]
    m = _DISC_TRACK.match(stem)
    if m:
        return index_key(int(m.group(1)), int(m.group(2)))
    m = _TRACK.match(stem)
    if m:
        return index_key(1, int(m.group(1)))
    return 0


def tag_index(path: str) -> int:
    """
    Index key from discnumber/tracknumber tags, read with mutagen.

    Falls back to filename_index when the file has no readable tags or no
    track number.
    """
    try:
        audio = mutagen.File(path, easy=True)
        if audio is not None and audio.tags is not None:
            track = parse_number((audio.tags.get("tracknumber") or [""])[0])
            if track is not None:
                disc = parse_number((audio.tags.get("discnumber") or [""])[0]) or 1
                return index_key(disc, track)
    except Exception as e:
        logger.debug(f"No tags readable from {path}: {e}")

    return filename_index(path)


def merge(src: str, dst: str, index_of: Indexer = filename_index) -> str:
    """
    Move the audio files of folder src into folder dst.

    1. dst missing: src is renamed to dst.
    2. Otherwise each audio file of src (discovery order) whose index key
       is not yet present in dst is copied to dst/<basename> and removed
       from src. Existing files in dst are never touched.
    3. If anything was copied, src's images are copied too (best-effort,
       existing names are kept).
    4. If audio remains in src, src is renamed to a numbered sibling
       "dst (N)"; otherwise src is deleted.

    Args:
        src: Folder holding new audio
        dst: Desired destination folder
        index_of: Maps a file path (absolute, or relative to the current
                  directory) to its index key

    Returns:
        dst, or the numbered sibling the leftovers were moved to

    Raises:
        OSError: If a copy, removal or rename fails
    """
    src, dst = os.fspath(src), os.fspath(dst)

    if not os.path.exists(dst):
        final = rename_folder(src, dst)
        logger.info(f"Placed {src} -> {final}")
        return final

    keys = {index_of(os.path.join(dst, f)) for f in list_audio(dst)}

    copied = 0
    for f in list_audio(src):
        src_path = os.path.join(src, f)
        target = os.path.join(dst, os.path.basename(f))
        k = index_of(src_path)

        if k in keys or os.path.lexists(target):
            logger.debug(f"Duplicate index {k}, keeping aside: {f}")
            continue

        try:
            copy_file(src_path, target)
        except OSError:
            if os.path.exists(target):
                os.remove(target)
            raise

        keys.add(k)
        copied += 1
        os.remove(src_path)

    if copied:
        for img in list_image(src):
            target = os.path.join(dst, os.path.basename(img))
            if os.path.lexists(target):
                continue
            try:
                copy_file(os.path.join(src, img), target)
            except OSError as e:
                logger.warning(f"Failed to copy image {img} into {dst}: {e}")

    if list_audio(src):
        final = rename_folder(src, dst)
        logger.info(f"Merged {copied} file(s) into {dst}, duplicates moved to {final}")
        return final

    shutil.rmtree(src)
    logger.info(f"Merged {copied} file(s) into {dst}")
    return dst
