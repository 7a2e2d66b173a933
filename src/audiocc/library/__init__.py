"""
Library Module: discovery, bundling and placement of audio folders.

- fsutil : extension-filtered walks, durable copy, folder renames
- bundle : group discovered files by parent directory
- place  : merge a produced folder into its destination
"""

__all__ = ["fsutil", "bundle", "place"]
