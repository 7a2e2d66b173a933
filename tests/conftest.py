"""Shared test fixtures for audiocc tests."""

import json
from pathlib import Path

import pytest


def write_tree(base: Path, files: dict) -> Path:
    """Create files below base from {relative_path: contents}."""
    for name, contents in files.items():
        path = base / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            path.write_bytes(contents)
        else:
            path.write_text(contents)
    return base


@pytest.fixture
def make_tree(tmp_path):
    """Factory: make_tree("name", {"a/b.flac": "..."}) -> Path of the new tree."""

    def _make(name: str, files: dict) -> Path:
        base = tmp_path / name
        base.mkdir(parents=True, exist_ok=True)
        return write_tree(base, files)

    return _make


@pytest.fixture
def probe_json():
    """ffprobe output for a FLAC track with an embedded 640x480 PNG cover."""
    return {
        "streams": [
            {
                "index": 0,
                "codec_name": "flac",
                "codec_type": "audio",
                "channels": 2,
                "sample_rate": "44100",
                "bits_per_raw_sample": "16",
                "duration": "215.400000",
            },
            {
                "index": 1,
                "codec_name": "png",
                "codec_type": "video",
                "width": 640,
                "height": 480,
                "pix_fmt": "rgb24",
            },
        ],
        "format": {
            "filename": "/music/in/01.flac",
            "nb_streams": 2,
            "format_name": "flac",
            "duration": "215.400000",
            "size": "25000000",
            "bit_rate": "928000",
            "tags": {
                "ARTIST": "Test Artist",
                "ALBUM": "Test Album",
                "DATE": "1999-04-01",
                "disc": "1",
                "DISCTOTAL": "2",
                "track": "3",
                "TOTALTRACKS": "12",
                "TITLE": "Test Song",
                "GENRE": "Rock",
            },
        },
    }


@pytest.fixture
def probe_stdout(probe_json):
    return json.dumps(probe_json)
