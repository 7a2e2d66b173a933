"""
Group sorted relative paths into runs that share a parent directory.

The input must already be in discovery order (see fsutil.list_by_extension);
runs are contiguous, so a directory whose files are split by another
directory's files would produce two bundles.
"""

import os
from typing import Callable, Iterator, Sequence


def iter_bundles(base_dir: str, sorted_paths: Sequence[str]) -> Iterator[range]:
    """
    Yield index ranges of consecutive paths with the same parent directory.

    Every index of sorted_paths appears in exactly one range; ranges are
    yielded in order and never empty.
    """
    start = 0
    anchor = None
    for i, p in enumerate(sorted_paths):
        parent = os.path.dirname(os.path.join(base_dir, p))
        if anchor is None:
            anchor = parent
        elif parent != anchor:
            yield range(start, i)
            start, anchor = i, parent

    if start < len(sorted_paths):
        yield range(start, len(sorted_paths))


def bundle(base_dir: str, sorted_paths: Sequence[str],
           visit: Callable[[range], None]) -> None:
    """
    Call visit once per bundle of sorted_paths.

    Exceptions raised by visit stop the iteration and propagate.
    """
    for indices in iter_bundles(base_dir, sorted_paths):
        visit(indices)
