"""
Filesystem helpers: extension-filtered walks, durable copies, size
comparisons and collision-safe folder renames.

Paths returned by the walkers are relative to the walked root and use
"/" separators. Sorting them as plain strings puts nested files ahead of
their parent's files, since "/" sorts before any alphanumeric.
"""

import bisect
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import List, Sequence, Union

from audiocc.errors import NotFoundError, WalkError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Sorted for bisect membership tests
AUDIO_EXTS = sorted(["flac", "m4a", "mp3", "mp4", "shn", "wav"])
IMAGE_EXTS = sorted(["jpeg", "jpg", "png"])

COPY_CHUNK = 1 << 20


def _has_ext(name: str, exts: Sequence[str]) -> bool:
    """Case-insensitive match of the final suffix against a sorted list."""
    _, dot, ext = name.rpartition(".")
    if not dot or not ext:
        return False
    ext = ext.lower()
    i = bisect.bisect_left(exts, ext)
    return i < len(exts) and exts[i] == ext


def list_by_extension(root: PathLike, exts: Sequence[str]) -> List[str]:
    """
    List regular files below root whose extension is in exts.

    Directories and symlinks are skipped, as are entries that cannot be
    stat'ed.

    Args:
        root: Directory to walk
        exts: Lower-case extensions without the dot, sorted

    Returns:
        Relative paths, sorted lexicographically (by code point)

    Raises:
        WalkError: If root itself cannot be traversed.
    """
    root = os.fspath(root)
    if not os.path.isdir(root):
        raise WalkError(f"not a directory: {root}")

    def _raise(err: OSError) -> None:
        if os.path.normpath(err.filename or "") == os.path.normpath(root):
            raise WalkError(f"cannot walk {root}: {err}") from err
        logger.debug(f"Skipping unreadable directory: {err.filename}")

    files = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
        for name in filenames:
            if not _has_ext(name, exts):
                continue
            full = os.path.join(dirpath, name)
            try:
                st = os.lstat(full)
            except OSError as e:
                logger.debug(f"Skipping {full}: {e}")
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            rel = os.path.relpath(full, root)
            files.append(rel.replace(os.sep, "/"))

    files.sort()
    return files


def list_audio(root: PathLike) -> List[str]:
    """Nested audio files below root (see list_by_extension)."""
    return list_by_extension(root, AUDIO_EXTS)


def list_image(root: PathLike) -> List[str]:
    """Nested image files below root (see list_by_extension)."""
    return list_by_extension(root, IMAGE_EXTS)


def copy_file(src: PathLike, dst: PathLike) -> None:
    """
    Copy src to dst (created or truncated), fsync'ing dst before close.

    A partially written dst is left in place on failure.

    Raises:
        OSError: On any open, read, write or sync failure.
    """
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        shutil.copyfileobj(fin, fout, COPY_CHUNK)
        fout.flush()
        os.fsync(fout.fileno())


def _open_size(path: PathLike) -> int:
    """Byte size of path, read through an open handle so unreadable files fail."""
    with open(path, "rb") as f:
        return os.fstat(f.fileno()).st_size


def is_larger(a: PathLike, b: PathLike) -> bool:
    """
    True if b cannot be opened, or a can be opened and is larger than b.

    Returns False if a cannot be opened.
    """
    try:
        size_a = _open_size(a)
    except OSError:
        return False

    try:
        size_b = _open_size(b)
    except OSError:
        return True

    return size_a > size_b


def nth_file_size(files: Sequence[PathLike], smallest: bool = False) -> PathLike:
    """
    Return the smallest (or largest) file by byte size.

    Ties go to the earliest entry. Entries that cannot be opened are
    ignored.

    Raises:
        NotFoundError: If files is empty or none of them can be opened.
    """
    found = None
    found_size = 0
    for f in files:
        try:
            size = _open_size(f)
        except OSError as e:
            logger.debug(f"Ignoring {f}: {e}")
            continue

        if (found is None
                or (smallest and size < found_size)
                or (not smallest and size > found_size)):
            found, found_size = f, size

    if found is None:
        raise NotFoundError("File not found")
    return found


def rename_folder(src: PathLike, dst: PathLike) -> str:
    """
    Rename folder src to dst, creating dst's parents as needed.

    If dst already exists, "dst (1)", "dst (2)", ... are tried until a
    free name is found.

    Returns:
        The path src now lives at

    Raises:
        OSError: If the parents cannot be created or the rename fails
                 (including cross-device renames, which are not retried).
    """
    dst = os.fspath(dst)
    if os.path.lexists(dst):
        x = 0
        while True:
            x += 1
            candidate = f"{dst} ({x})"
            if not os.path.lexists(candidate):
                dst = candidate
                break

    parent = os.path.dirname(dst)
    if parent:
        os.makedirs(parent, mode=0o777, exist_ok=True)

    os.rename(src, dst)
    logger.debug(f"Renamed {src} -> {dst}")
    return dst
