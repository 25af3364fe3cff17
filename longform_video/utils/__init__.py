"""
Utilities
=========

Helper functions for writing videos and metadata to disk.
"""

from .storage import ensure_dir, generate_filename, save_video, save_metadata

__all__ = [
    "ensure_dir",
    "generate_filename",
    "save_video",
    "save_metadata",
]
