"""
Probe Module: technical metadata and tags via ffprobe.
"""

__all__ = ["ffprobe"]
