"""
Integration tests against real ffmpeg/ffprobe binaries.

Generates short sine-wave tracks with ffmpeg, then runs the complete
pipeline: probe → cover art → transcode → place.
"""

import shutil
import subprocess

import pytest

from audiocc.library.place import filename_index
from audiocc.pipeline import Pipeline
from audiocc.probe.ffprobe import FFprobe
from audiocc.transcode.ffmpeg import FFmpeg

# Integration test - requires ffmpeg and ffprobe on PATH
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="ffmpeg/ffprobe not installed",
    ),
]


def make_flac(path, **tags):
    args = ["ffmpeg", "-v", "quiet", "-f", "lavfi", "-i", "sine=frequency=440:duration=1"]
    for key, value in tags.items():
        args += ["-metadata", f"{key}={value}"]
    args += ["-y", str(path)]
    subprocess.run(args, check=True, capture_output=True)


def make_png(path, size="64x64"):
    subprocess.run(
        ["ffmpeg", "-v", "quiet", "-f", "lavfi", "-i", f"color=c=red:s={size}",
         "-frames:v", "1", "-y", str(path)],
        check=True, capture_output=True,
    )


@pytest.fixture
def source(tmp_path):
    album = tmp_path / "source" / "album"
    album.mkdir(parents=True)
    make_flac(album / "01.flac", artist="Sine", album="Waves", date="2020",
              track="1", title="Four Forty")
    make_flac(album / "02.flac", artist="Sine", album="Waves", date="2020",
              track="2", title="Again")
    make_png(album / "cover.png", "600x600")
    return tmp_path / "source"


class TestRealTools:
    """Run the real adapters end to end."""

    def test_probe(self, source):
        probe = FFprobe().get_data(str(source / "album" / "01.flac"))

        assert probe.container == "flac"
        assert probe.codec == "flac"
        assert probe.tags.artist == "Sine"
        assert probe.tags.title == "Four Forty"
        assert probe.duration == pytest.approx(1.0, abs=0.1)

    def test_pipeline(self, source, tmp_path):
        dest = tmp_path / "lib"
        pipeline = Pipeline(FFprobe(), FFmpeg(), quality="v0", indexer=filename_index)

        stats = pipeline.run(str(source), str(dest))

        assert stats.ok
        album = dest / "Sine" / "2020 - Waves"
        assert sorted(p.name for p in album.iterdir()) == [
            "1-01 Four Forty.mp3", "1-02 Again.mp3", "cover.jpg",
        ]

        probe = FFprobe().get_data(str(album / "1-01 Four Forty.mp3"))
        assert probe.codec == "mp3"
        assert probe.tags.title == "Four Forty"
        assert probe.embedded_image()[2] is True

    def test_fix_mode(self, source, tmp_path):
        dest = tmp_path / "lib"
        pipeline = Pipeline(FFprobe(), FFmpeg(), quality="320", fix=True,
                            embed_cover=False, indexer=filename_index)

        stats = pipeline.run(str(source), str(dest))

        assert stats.ok
        album = dest / "Sine" / "2020 - Waves"
        assert not [p for p in album.iterdir() if p.name.endswith("-fix.mp3")]
        assert FFprobe().get_data(str(album / "1-02 Again.mp3")).tags.track == "2"
