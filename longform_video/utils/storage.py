"""
Storage Utilities
=================

Helper functions for file and metadata storage.

Concurrent requests may share an output directory with no locking, so every
generated filename carries a timestamp and a random suffix.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Union

import aiofiles

from ..core.security import sanitize_filename

logger = logging.getLogger(__name__)


def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def generate_filename(prefix: str = "video", suffix: str = ".mp4") -> str:
    """
    Generate a collision-resistant filename.

    Args:
        prefix: Filename prefix
        suffix: File extension

    Returns:
        ``<prefix>_<YYYYmmdd_HHMMSS_micro>_<random>.<ext>``
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return f"{sanitize_filename(prefix)}_{timestamp}_{uuid.uuid4().hex[:8]}{suffix}"


async def save_video(video_data: bytes, output_path: Union[str, Path]) -> str:
    """
    Save video data to a file.

    Args:
        video_data: Raw video bytes
        output_path: Path to save the video

    Returns:
        Path to saved video
    """
    output_path = Path(output_path)
    ensure_dir(output_path.parent)

    async with aiofiles.open(output_path, "wb") as f:
        await f.write(video_data)

    logger.info(f"Video saved to {output_path}")
    return str(output_path)


def save_metadata(metadata: Dict[str, Any], output_path: Union[str, Path]) -> str:
    """
    Save metadata to a JSON file.

    Args:
        metadata: Metadata dictionary
        output_path: Path to save the metadata

    Returns:
        Path to saved metadata
    """
    output_path = Path(output_path)
    ensure_dir(output_path.parent)

    metadata["saved_at"] = datetime.now().isoformat()

    with open(output_path, "w") as f:
        json.dump(metadata, f, indent=2, default=str)

    logger.debug(f"Metadata saved to {output_path}")
    return str(output_path)
