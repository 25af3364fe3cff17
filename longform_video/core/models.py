"""
Data Models
===========

Requests, operations, clips and chain results shared by the adapters and
the coordinator.
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Union, ClassVar


class GenerationMode(Enum):
    """What the caller is conditioning the video on."""
    TEXT_TO_VIDEO = "text-to-video"
    IMAGE_TO_VIDEO = "image-to-video"
    FRAME_TO_VIDEO = "frame-to-video"


class OperationState(Enum):
    """Lifecycle of one asynchronous backend job."""
    SUBMITTED = "submitted"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.DONE, OperationState.FAILED, OperationState.TIMED_OUT)


class ClipStatus(Enum):
    """Status of one produced segment."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ChainStatus(Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"


# =============================================================================
# Inputs
# =============================================================================


MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


@dataclass(frozen=True)
class ImageInput:
    """Caller-supplied image bytes plus MIME type."""

    data: bytes = field(repr=False)
    mime_type: str = "image/png"

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageInput":
        """Load an image from disk, taking the MIME type from its extension."""
        path = Path(path)
        mime_type = MIME_TYPES.get(path.suffix.lower(), "image/png")
        return cls(data=path.read_bytes(), mime_type=mime_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class GenerationRequest:
    """
    One request for a finished video.

    Immutable once built; list arguments are stored as tuples. ``mode`` may
    be given as a ``GenerationMode`` or its string value.
    """

    prompt: str
    mode: Union[GenerationMode, str] = GenerationMode.TEXT_TO_VIDEO
    target_duration_seconds: float = 8
    aspect_ratio: str = "16:9"
    resolution: str = "720p"
    reference_images: Tuple[ImageInput, ...] = ()
    first_frame: Optional[ImageInput] = None
    last_frame: Optional[ImageInput] = None
    provider_override: Optional[str] = None

    # Prompts for each extension of a multi-segment chain; the base prompt
    # is reused for any extension without one.
    extension_prompts: Tuple[str, ...] = ()
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "reference_images", tuple(self.reference_images or ()))
        object.__setattr__(self, "extension_prompts", tuple(self.extension_prompts or ()))
        if isinstance(self.mode, str):
            try:
                object.__setattr__(self, "mode", GenerationMode(self.mode))
            except ValueError:
                # left as-is so validation can report it with everything else
                pass


# =============================================================================
# Artifact References
# =============================================================================


@dataclass(frozen=True)
class ArtifactRef:
    """
    Opaque backend-native handle to a generated video.

    Subclasses are bound to exactly one backend. Adapters accept only their
    own subclass, so a handle can never be replayed against another backend.
    """

    BACKEND: ClassVar[str] = ""

    @property
    def backend(self) -> str:
        return self.BACKEND


@dataclass(frozen=True)
class VeoVideoRef(ArtifactRef):
    """
    Handle to a video held by the Gemini API.

    Besides the file handle it records the chain lineage needed to enforce
    extension limits locally.
    """

    BACKEND: ClassVar[str] = "veo"

    uri: str = ""
    mime_type: str = "video/mp4"
    aspect_ratio: str = "16:9"
    resolution: str = "720p"
    total_duration: int = 0
    extension_count: int = 0
    # Video object exactly as the API returned it (file uri or inline bytes)
    video: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self.video) if self.video else {"uri": self.uri}
        payload.setdefault("mimeType", self.mime_type)
        return payload


@dataclass(frozen=True)
class LongCatVideoRef(ArtifactRef):
    """Handle to a finished fal.ai LongCat request."""

    BACKEND: ClassVar[str] = "longcat"

    request_id: str = ""
    url: str = ""


# =============================================================================
# Operations and Clips
# =============================================================================


@dataclass
class Operation:
    """One asynchronous backend job, owned by the adapter call that made it."""

    name: str
    backend: str
    state: OperationState = OperationState.SUBMITTED
    attempts: int = 0
    submitted_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    payload: Dict[str, Any] = field(default_factory=dict, repr=False)
    # Backend-specific bookkeeping, e.g. status/result URLs
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    def mark_polling(self) -> None:
        self.state = OperationState.POLLING

    def mark_done(self, payload: Dict[str, Any]) -> None:
        self.state = OperationState.DONE
        self.payload = payload
        self.finished_at = datetime.now()

    def mark_failed(self, error_message: str) -> None:
        self.state = OperationState.FAILED
        self.error_message = error_message
        self.finished_at = datetime.now()

    def mark_timed_out(self) -> None:
        self.state = OperationState.TIMED_OUT
        self.finished_at = datetime.now()


@dataclass
class Clip:
    """One produced video segment."""

    index: int
    source_backend: str
    status: ClipStatus = ClipStatus.PENDING
    duration_seconds: float = 0
    time_range: Tuple[float, float] = (0, 0)

    artifact_ref: Optional[ArtifactRef] = None
    local_path: Optional[str] = None
    remote_url: Optional[str] = None

    prompt: Optional[str] = None
    is_extension: bool = False
    operation_name: Optional[str] = None
    generation_params: Dict[str, Any] = field(default_factory=dict)

    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ClipStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "index": self.index,
            "source_backend": self.source_backend,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "time_range": list(self.time_range),
            "local_path": self.local_path,
            "remote_url": self.remote_url,
            "prompt": self.prompt,
            "is_extension": self.is_extension,
            "operation_name": self.operation_name,
            "generation_params": self.generation_params,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }


def tally_provider_usage(clips: List[Clip]) -> Dict[str, int]:
    """Count completed clips per source backend."""
    usage: Dict[str, int] = {}
    for clip in clips:
        if clip.is_completed:
            usage[clip.source_backend] = usage.get(clip.source_backend, 0) + 1
    return usage


@dataclass
class ChainResult:
    """
    Ordered clips forming one continuous video.

    ``clips`` holds every attempted clip, including the one whose failure
    stopped a chain. Clips never attempted after that failure do not appear.
    """

    status: ChainStatus
    clips: List[Clip] = field(default_factory=list)
    backend: Optional[str] = None
    final_artifact_path: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    metadata_path: Optional[str] = None

    @property
    def total_clips(self) -> int:
        return len(self.clips)

    @property
    def completed_clips(self) -> int:
        return sum(1 for clip in self.clips if clip.is_completed)

    @property
    def failed_clips(self) -> int:
        return sum(1 for clip in self.clips if clip.status == ClipStatus.FAILED)

    @property
    def total_duration_seconds(self) -> float:
        return sum(clip.duration_seconds for clip in self.clips if clip.is_completed)

    @property
    def provider_usage(self) -> Dict[str, int]:
        return tally_provider_usage(self.clips)

    @property
    def is_partial(self) -> bool:
        return self.status == ChainStatus.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "backend": self.backend,
            "clips": [clip.to_dict() for clip in self.clips],
            "total_clips": self.total_clips,
            "completed_clips": self.completed_clips,
            "failed_clips": self.failed_clips,
            "total_duration_seconds": self.total_duration_seconds,
            "provider_usage": self.provider_usage,
            "final_artifact_path": self.final_artifact_path,
            "error": self.error,
        }
