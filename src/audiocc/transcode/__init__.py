"""
Transcode Module: MP3 output and cover art via ffmpeg.

- id3v2.4 tags, optional embedded front cover
- Two-pass fix mode for files with broken duration metadata
"""

__all__ = ["ffmpeg"]
