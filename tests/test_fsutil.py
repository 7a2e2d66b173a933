"""
Unit tests for filesystem helpers.

Tests extension walks, durable copy, size comparisons and folder renames.
"""

import os

import pytest

from audiocc.errors import NotFoundError, WalkError
from audiocc.library.fsutil import (
    AUDIO_EXTS,
    IMAGE_EXTS,
    copy_file,
    is_larger,
    list_audio,
    list_by_extension,
    list_image,
    nth_file_size,
    rename_folder,
)


@pytest.fixture
def sized_files(make_tree):
    """Files of known sizes: 5, 1, 11 and 6 bytes."""
    base = make_tree("sized", {
        "file1": "abcde",
        "file2.jpeg": "a",
        "dir1/file3.JPG": "acddfefsefd",
        "dir1/dir2/file4.png": "dfadfd",
    })
    return base, [
        str(base / "file1"),
        str(base / "file2.jpeg"),
        str(base / "dir1/file3.JPG"),
        str(base / "dir1/dir2/file4.png"),
    ]


class TestExtensionTables:
    """Extension tables used for bisect lookups."""

    def test_tables_are_sorted(self):
        """Tables must be sorted for binary search."""
        assert AUDIO_EXTS == sorted(AUDIO_EXTS)
        assert IMAGE_EXTS == sorted(IMAGE_EXTS)

    def test_table_contents(self):
        assert AUDIO_EXTS == ["flac", "m4a", "mp3", "mp4", "shn", "wav"]
        assert IMAGE_EXTS == ["jpeg", "jpg", "png"]


class TestListByExtension:
    """Test recursive, sorted, case-insensitive walks."""

    def test_list_images(self, make_tree):
        """Nested images come first, extensions match any case."""
        base = make_tree("imgs", {
            "file1": "",
            "file2.jpeg": "",
            "dir1/file3.JPG": "",
            "dir1/dir2/file4.png": "",
        })

        assert list_image(base) == [
            "dir1/dir2/file4.png",
            "dir1/file3.JPG",
            "file2.jpeg",
        ]

    def test_list_audio(self, make_tree):
        base = make_tree("audio", {
            "not audio file": "",
            "file1.FLAC": "",
            "file2.m4a": "",
            "dir1/file3.mp3": "",
            "dir1/dir2/file4.mp4": "",
            "dir1/dir2/file5.SHN": "",
            "dir1/dir2/file6.WAV": "",
        })

        assert list_audio(base) == [
            "dir1/dir2/file4.mp4",
            "dir1/dir2/file5.SHN",
            "dir1/dir2/file6.WAV",
            "dir1/file3.mp3",
            "file1.FLAC",
            "file2.m4a",
        ]

    def test_result_is_sorted(self, make_tree):
        base = make_tree("order", {
            "b.mp3": "", "a/z.mp3": "", "a.mp3": "", "A/b.flac": "", "a/b/c.wav": "",
        })
        result = list_audio(base)
        assert result == sorted(result)

    def test_only_final_suffix_counts(self, make_tree):
        """"x.mp3.txt" is not audio; "x.txt.mp3" is."""
        base = make_tree("suffix", {"x.mp3.txt": "", "x.txt.mp3": "", "mp3": ""})
        assert list_audio(base) == ["x.txt.mp3"]

    def test_directories_are_skipped(self, make_tree):
        """A directory named like an audio file is not returned."""
        base = make_tree("dirs", {"album.flac/01.flac": ""})
        assert list_audio(base) == ["album.flac/01.flac"]

    def test_symlinks_are_skipped(self, make_tree):
        base = make_tree("links", {"real.mp3": "x"})
        os.symlink(base / "real.mp3", base / "link.mp3")
        assert list_audio(base) == ["real.mp3"]

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(WalkError):
            list_by_extension(tmp_path / "nope", AUDIO_EXTS)

    def test_empty_root(self, tmp_path):
        assert list_image(tmp_path) == []


class TestCopyFile:
    """Test durable copies."""

    def test_copy_contents(self, sized_files, tmp_path):
        _, files = sized_files
        dst = tmp_path / "copy1"

        copy_file(files[2], dst)

        assert dst.read_bytes() == b"acddfefsefd"

    def test_copy_truncates_existing(self, sized_files, tmp_path):
        _, files = sized_files
        dst = tmp_path / "copy2"
        dst.write_text("much longer previous contents")

        copy_file(files[1], dst)

        assert dst.read_bytes() == b"a"

    def test_copy_missing_source(self, sized_files, tmp_path):
        with pytest.raises(OSError):
            copy_file(tmp_path / "audiocc-file-def-dne", tmp_path / "out")

    def test_copy_into_missing_dir(self, sized_files, tmp_path):
        _, files = sized_files
        with pytest.raises(OSError):
            copy_file(files[0], tmp_path / "no" / "such" / "dir" / "out")


class TestIsLarger:
    """Test larger-file policy."""

    def test_larger_source(self, sized_files):
        _, files = sized_files
        assert is_larger(files[0], files[1]) is True

    def test_smaller_source(self, sized_files):
        _, files = sized_files
        assert is_larger(files[1], files[0]) is False

    def test_nested_files(self, sized_files):
        _, files = sized_files
        assert is_larger(files[2], files[3]) is True

    def test_missing_source(self, sized_files):
        _, files = sized_files
        assert is_larger("audiocc-file-def-dne", files[3]) is False

    def test_missing_destination(self, sized_files, tmp_path):
        _, files = sized_files
        assert is_larger(files[1], tmp_path / "missing") is True

    def test_equal_sizes(self, make_tree):
        base = make_tree("eq", {"a": "12", "b": "34"})
        assert is_larger(base / "a", base / "b") is False

    def test_unopenable_source(self, sized_files, make_tree):
        """A directory stats fine but cannot be opened as a file."""
        _, files = sized_files
        base = make_tree("unopenable", {"d/x": "much longer than one byte"})
        assert is_larger(base / "d", files[1]) is False

    def test_unopenable_destination(self, sized_files, make_tree):
        _, files = sized_files
        base = make_tree("unopenable-dst", {"d/x": ""})
        assert is_larger(files[1], base / "d") is True

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can read any file")
    def test_unreadable_source(self, sized_files, make_tree):
        _, files = sized_files
        base = make_tree("unreadable", {"secret": "much longer than one byte"})
        os.chmod(base / "secret", 0)
        assert is_larger(base / "secret", files[1]) is False


class TestNthFileSize:
    """Test smallest/largest selection."""

    def test_smallest(self, sized_files):
        _, files = sized_files
        assert nth_file_size(files, smallest=True) == files[1]

    def test_largest(self, sized_files):
        _, files = sized_files
        assert nth_file_size(files, smallest=False) == files[2]

    def test_tie_goes_to_first(self, make_tree):
        base = make_tree("tie", {"a": "xx", "b": "yy"})
        files = [str(base / "a"), str(base / "b")]
        assert nth_file_size(files) == files[0]
        assert nth_file_size(files, smallest=True) == files[0]

    def test_missing_file_only(self):
        with pytest.raises(NotFoundError):
            nth_file_size(["audiocc-file-def-dne"])

    def test_empty_list(self):
        with pytest.raises(NotFoundError):
            nth_file_size([])

    def test_missing_entries_are_ignored(self, sized_files):
        _, files = sized_files
        assert nth_file_size(["audiocc-file-def-dne", files[0]]) == files[0]

    def test_unopenable_entries_are_ignored(self, sized_files, make_tree):
        _, files = sized_files
        base = make_tree("unopenable-nth", {"big/x": "x" * 4096})
        assert nth_file_size([str(base / "big"), files[0]]) == files[0]

    def test_only_unopenable_entries(self, make_tree):
        base = make_tree("unopenable-only", {"big/x": ""})
        with pytest.raises(NotFoundError):
            nth_file_size([str(base / "big")])


class TestRenameFolder:
    """Test collision-safe folder renames."""

    def test_rename_cascade(self, make_tree):
        base = make_tree("rename", {
            "dir1/file1": "abcde",
            "dir2/file2": "a",
            "dir3/file3": "",
            "dir4/file4": "",
            "dir6/file6": "",
        })

        cases = [
            ("dir2", "dir1", "dir1 (1)"),
            ("dir3", "dir1", "dir1 (2)"),
            ("dir4", "dir5", "dir5"),
            ("dir6", "path2/dir5", "path2/dir5"),
        ]
        for src, dst, expected in cases:
            result = rename_folder(str(base / src), str(base / dst))
            assert result == str(base / expected)

        assert (base / "dir1 (1)" / "file2").read_text() == "a"
        assert (base / "path2" / "dir5" / "file6").exists()
        assert not (base / "dir2").exists()

    def test_rename_same_target_twice(self, make_tree):
        """Second rename onto the same target lands on a numbered sibling."""
        base = make_tree("twice", {"a/x": "", "b/y": ""})

        first = rename_folder(str(base / "a"), str(base / "t"))
        second = rename_folder(str(base / "b"), str(base / "t"))

        assert first == str(base / "t")
        assert second == str(base / "t (1)")

    def test_rename_missing_source(self, tmp_path):
        with pytest.raises(OSError):
            rename_folder(str(tmp_path / "notfound"), str(tmp_path / "not" / "found"))
