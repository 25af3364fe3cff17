"""
Core Module
===========

Configuration, data models, exceptions, and security helpers for the
long-form video coordinator.
"""

from .config import (
    Config,
    VeoConfig,
    LongCatConfig,
    PollingConfig,
    OutputConfig,
    GenerationConfig,
    VeoClipConfig,
    LongCatClipConfig,
)
from .exceptions import (
    CoordinatorError,
    ConfigurationError,
    InvalidRequest,
    ValidationError,
    ChainLimitExceeded,
    BackendError,
    OperationTimeout,
    SecurityError,
)
from .models import (
    GenerationMode,
    GenerationRequest,
    ImageInput,
    ArtifactRef,
    VeoVideoRef,
    LongCatVideoRef,
    Operation,
    OperationState,
    Clip,
    ClipStatus,
    ChainResult,
    ChainStatus,
)
from .security import PathValidator, sanitize_filename, sanitize_prompt, redact_api_key

__all__ = [
    # Configuration
    "Config",
    "VeoConfig",
    "LongCatConfig",
    "PollingConfig",
    "OutputConfig",
    "GenerationConfig",
    "VeoClipConfig",
    "LongCatClipConfig",
    # Exceptions
    "CoordinatorError",
    "ConfigurationError",
    "InvalidRequest",
    "ValidationError",
    "ChainLimitExceeded",
    "BackendError",
    "OperationTimeout",
    "SecurityError",
    # Models
    "GenerationMode",
    "GenerationRequest",
    "ImageInput",
    "ArtifactRef",
    "VeoVideoRef",
    "LongCatVideoRef",
    "Operation",
    "OperationState",
    "Clip",
    "ClipStatus",
    "ChainResult",
    "ChainStatus",
    # Security
    "PathValidator",
    "sanitize_filename",
    "sanitize_prompt",
    "redact_api_key",
]
