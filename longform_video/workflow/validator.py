"""
Request Validation
==================

Shape checks run before a request reaches any backend.
"""

import logging
import math
from numbers import Real
from typing import Iterable, List, Optional

from ..core.exceptions import InvalidRequest
from ..core.models import GenerationMode, GenerationRequest, ImageInput

logger = logging.getLogger(__name__)


MAX_REFERENCE_IMAGES = 3
MAX_DURATION_SECONDS = 900


def request_errors(
    request: GenerationRequest,
    known_backends: Optional[Iterable[str]] = None,
    max_duration: int = MAX_DURATION_SECONDS,
) -> List[str]:
    """Return every constraint the request violates, in a stable order."""
    errors = []

    if not isinstance(request.prompt, str) or not request.prompt.strip():
        errors.append("prompt is required")

    if not isinstance(request.mode, GenerationMode):
        valid = ", ".join(mode.value for mode in GenerationMode)
        errors.append(f"mode must be one of: {valid}")

    duration = request.target_duration_seconds
    if not isinstance(duration, Real) or isinstance(duration, bool):
        errors.append("target_duration_seconds must be a number")
    elif not math.isfinite(duration):
        errors.append("target_duration_seconds must be finite")
    else:
        if duration < 1:
            errors.append("target_duration_seconds must be at least 1 second")
        if duration > max_duration:
            errors.append(f"target_duration_seconds cannot exceed {max_duration} seconds")

    if len(request.reference_images) > MAX_REFERENCE_IMAGES:
        errors.append(f"at most {MAX_REFERENCE_IMAGES} reference images allowed")
    if any(not isinstance(image, ImageInput) for image in request.reference_images):
        errors.append("reference_images must be ImageInput values")

    if request.mode == GenerationMode.IMAGE_TO_VIDEO:
        if not request.reference_images and request.first_frame is None:
            errors.append("reference image required for image-to-video mode")

    if request.mode == GenerationMode.FRAME_TO_VIDEO:
        if request.first_frame is None:
            errors.append("first_frame required for frame-to-video mode")
        if request.last_frame is None:
            errors.append("last_frame required for frame-to-video mode")

    if request.provider_override and known_backends is not None:
        known = sorted(known_backends)
        if request.provider_override.lower() not in known:
            errors.append(f"provider_override must be one of: {', '.join(known)}")

    if any(not isinstance(p, str) or not p.strip() for p in request.extension_prompts):
        errors.append("extension_prompts must be non-empty strings")

    return errors


def validate_request(
    request: GenerationRequest,
    known_backends: Optional[Iterable[str]] = None,
    max_duration: int = MAX_DURATION_SECONDS,
) -> None:
    """
    Validate a request's shape and mode-specific fields.

    Raises:
        InvalidRequest: listing every violated constraint
    """
    errors = request_errors(request, known_backends, max_duration)
    if errors:
        logger.warning(f"Rejected request: {'; '.join(errors)}")
        raise InvalidRequest(f"Invalid request: {', '.join(errors)}", errors=errors)
