"""
Long-Form Video Coordinator
===========================

Produces videos from a few seconds up to fifteen minutes by routing each
request to the backend that can reach the requested length.

Features:
- Google Veo 3.1 for 8s-148s: a base clip plus up to 20 native 7s extensions
- LongCat on fal.ai for 149s-900s: one long single-shot generation
- Duration-based provider selection with explicit overrides
- Partial results when an extension chain breaks midway
- Per-clip provenance and JSON metadata beside every video

Quick Start:
    from longform_video import Config, GenerationRequest, VideoCoordinator

    async with VideoCoordinator.from_config(Config.load()) as coordinator:
        result = await coordinator.generate_video(
            GenerationRequest(
                prompt="A lighthouse keeper climbs the stairs at dusk",
                target_duration_seconds=36,
                extension_prompts=[
                    "The keeper reaches the lamp room and lights the lamp",
                    "The beam sweeps across a stormy sea",
                ],
            )
        )
        print(result.status.value, result.final_artifact_path)
"""

__version__ = "0.1.0"

from .core.config import Config
from .core.exceptions import (
    CoordinatorError,
    ConfigurationError,
    InvalidRequest,
    ValidationError,
    ChainLimitExceeded,
    BackendError,
    OperationTimeout,
    SecurityError,
)
from .core.models import (
    GenerationMode,
    GenerationRequest,
    ImageInput,
    Clip,
    ClipStatus,
    ChainResult,
    ChainStatus,
)
from .api import get_backend, list_backends, VeoBackend, LongCatBackend
from .workflow import VideoCoordinator, SceneExtensionChain, select_provider, validate_request

__all__ = [
    # Version
    "__version__",

    # Entry points
    "VideoCoordinator",
    "SceneExtensionChain",
    "select_provider",
    "validate_request",

    # Backends
    "VeoBackend",
    "LongCatBackend",
    "get_backend",
    "list_backends",

    # Models
    "Config",
    "GenerationMode",
    "GenerationRequest",
    "ImageInput",
    "Clip",
    "ClipStatus",
    "ChainResult",
    "ChainStatus",

    # Exceptions
    "CoordinatorError",
    "ConfigurationError",
    "InvalidRequest",
    "ValidationError",
    "ChainLimitExceeded",
    "BackendError",
    "OperationTimeout",
    "SecurityError",
]
