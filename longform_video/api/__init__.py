"""
Backend Integration Layer
=========================

Adapters for the video-synthesis services the coordinator drives.

Supported Backends:
- veo: Google Veo 3.1 (8s base clips, chained 7s extensions)
- longcat: LongCat on fal.ai (single shot, up to 900s)

Usage:
    from longform_video.api import get_backend

    async with get_backend("longcat") as backend:
        clip = await backend.text_to_video("A city at dawn", clip_config)
"""

from .base import BaseVideoBackend
from .factory import get_backend, list_backends, register_backend
from .veo import VeoBackend
from .longcat import LongCatBackend

__all__ = [
    "BaseVideoBackend",
    "VeoBackend",
    "LongCatBackend",
    "get_backend",
    "list_backends",
    "register_backend",
]
