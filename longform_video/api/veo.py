"""
Google Veo Backend
==================

Extension-capable backend: Google Veo 3.1 through the Gemini REST API.

Features:
- 8s base clips from a text prompt
- Scene extension: +7s anchored to a previous Veo video handle, up to 20
  times and 141s of input video
- Up to 3 reference images for subject consistency
- First/last frame interpolation

The ``personGeneration`` compliance value is chosen per mode. Veo accepts
only ``allow_all`` for text and extension jobs and only ``allow_adult`` for
reference and interpolation jobs.
"""

import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Sequence, Union

import httpx

from ..core.config import VeoConfig, VeoClipConfig
from ..core.exceptions import BackendError, ChainLimitExceeded, InvalidRequest, ValidationError
from ..core.models import (
    ArtifactRef,
    Clip,
    ClipStatus,
    ImageInput,
    Operation,
    VeoVideoRef,
)
from ..core.security import sanitize_prompt
from .base import BaseVideoBackend
from .factory import register_backend

logger = logging.getLogger(__name__)


BASE = "base"
EXTENSION = "extension"
REFERENCES = "references"
INTERPOLATION = "interpolation"

PERSON_GENERATION = {
    BASE: "allow_all",
    EXTENSION: "allow_all",
    REFERENCES: "allow_adult",
    INTERPOLATION: "allow_adult",
}

MAX_REFERENCE_IMAGES = 3


@register_backend("veo")
class VeoBackend(BaseVideoBackend):
    """
    Google Veo video generation backend.

    Every public method submits one long-running operation, polls it to
    completion, downloads the video and returns a completed Clip.
    """

    def __init__(
        self,
        config: Optional[VeoConfig] = None,
        api_key: Optional[str] = None,
        output_path: Union[str, Path] = "./output/videos",
        client: Optional[httpx.AsyncClient] = None,
        filename_prefix: str = "video",
    ):
        self.config = config or VeoConfig()
        super().__init__(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.request_timeout,
            output_path=output_path,
            client=client,
            filename_prefix=filename_prefix,
        )

    @property
    def backend_name(self) -> str:
        return "veo"

    @property
    def env_key_name(self) -> str:
        return self.config.api_key_env

    def _get_default_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com/v1beta"

    def _get_headers(self) -> Dict[str, str]:
        """The Gemini API takes its key in a header, not a bearer token."""
        return {
            "x-goog-api-key": self.api_key or "",
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    @property
    def base_duration(self) -> int:
        return self.config.base_duration

    @property
    def extension_duration(self) -> int:
        return self.config.extension_duration

    @property
    def max_extensions(self) -> int:
        return self.config.max_extensions

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate_base(self, prompt: str, config: VeoClipConfig) -> Clip:
        """
        Generate the base clip of a chain.

        The returned clip's ``artifact_ref`` is the only valid input to the
        first ``extend`` call.
        """
        self.validate_clip_config(config)
        logger.info(f"Veo base generation ({self.base_duration}s): {prompt[:60]}")

        instance = {"prompt": sanitize_prompt(prompt)}
        lineage = {
            "aspect_ratio": config.aspect_ratio,
            "resolution": config.resolution,
            "total_duration": self.base_duration,
            "extension_count": 0,
        }
        return await self._generate(
            BASE, instance, config, duration=self.base_duration, lineage=lineage
        )

    async def extend(
        self,
        prior_ref: ArtifactRef,
        extension_prompt: str,
        config: VeoClipConfig,
    ) -> Clip:
        """
        Extend a Veo video by one fixed increment.

        Args:
            prior_ref: Handle of the clip being extended
            extension_prompt: What happens in the new segment
            config: Must use the same aspect ratio and resolution as the base

        Raises:
            InvalidRequest: ``prior_ref`` is not a Veo handle
            ChainLimitExceeded: the extension would break a chain limit
        """
        if not isinstance(prior_ref, VeoVideoRef):
            raise InvalidRequest(
                f"Veo cannot extend a {prior_ref.backend or type(prior_ref).__name__} artifact",
                errors=["prior_ref must be a Veo video handle"],
            )
        self.check_extension_limits(prior_ref, config)

        index = prior_ref.extension_count + 1
        logger.info(
            f"Veo extension {index}/{self.max_extensions} "
            f"(+{self.extension_duration}s): {extension_prompt[:60]}"
        )

        instance = {
            "prompt": sanitize_prompt(extension_prompt),
            "video": prior_ref.to_payload(),
        }
        lineage = {
            "aspect_ratio": prior_ref.aspect_ratio,
            "resolution": prior_ref.resolution,
            "total_duration": prior_ref.total_duration + self.extension_duration,
            "extension_count": index,
        }
        clip = await self._generate(
            EXTENSION, instance, config,
            duration=self.extension_duration, index=index, lineage=lineage,
        )
        clip.is_extension = True
        return clip

    async def generate_with_references(
        self,
        prompt: str,
        reference_images: Sequence[ImageInput],
        config: VeoClipConfig,
    ) -> Clip:
        """Single-shot generation conditioned on 1-3 asset reference images."""
        errors = self._clip_config_errors(config)
        if not 1 <= len(reference_images) <= MAX_REFERENCE_IMAGES:
            errors["reference_images"] = (
                f"between 1 and {MAX_REFERENCE_IMAGES} images required, got {len(reference_images)}"
            )
        self._raise_for_errors(errors)

        logger.info(f"Veo reference generation with {len(reference_images)} image(s)")

        instance = {
            "prompt": sanitize_prompt(prompt),
            "referenceImages": [
                {"image": self._image_payload(image), "referenceType": "asset"}
                for image in reference_images
            ],
        }
        clip = await self._generate(REFERENCES, instance, config, duration=self.base_duration)
        clip.generation_params["reference_count"] = len(reference_images)
        return clip

    async def generate_interpolated(
        self,
        prompt: str,
        first_frame: ImageInput,
        last_frame: ImageInput,
        config: VeoClipConfig,
    ) -> Clip:
        """Single-shot generation constrained to a first and last frame."""
        errors = self._clip_config_errors(config)
        if first_frame is None:
            errors["first_frame"] = "required"
        if last_frame is None:
            errors["last_frame"] = "required"
        self._raise_for_errors(errors)

        logger.info("Veo first/last frame interpolation")

        instance = {
            "prompt": sanitize_prompt(prompt),
            "image": self._image_payload(first_frame),
            "lastFrame": self._image_payload(last_frame),
        }
        return await self._generate(INTERPOLATION, instance, config, duration=self.base_duration)

    # -------------------------------------------------------------------------
    # Local checks
    # -------------------------------------------------------------------------

    def _clip_config_errors(self, config: VeoClipConfig) -> Dict[str, str]:
        errors = {}
        if config.aspect_ratio not in VeoConfig.VALID_ASPECT_RATIOS:
            errors["aspect_ratio"] = f"must be one of {sorted(VeoConfig.VALID_ASPECT_RATIOS)}"
        if config.resolution not in VeoConfig.VALID_RESOLUTIONS:
            errors["resolution"] = f"must be one of {sorted(VeoConfig.VALID_RESOLUTIONS)}"
        return errors

    def _raise_for_errors(self, errors: Dict[str, str]) -> None:
        if errors:
            summary = "; ".join(f"{name}: {constraint}" for name, constraint in errors.items())
            raise ValidationError(f"Invalid Veo parameters: {summary}", errors=errors)

    def validate_clip_config(self, config: VeoClipConfig) -> None:
        """Raise ValidationError naming every unsupported setting."""
        self._raise_for_errors(self._clip_config_errors(config))

    def check_extension_limits(self, prior_ref: VeoVideoRef, config: VeoClipConfig) -> None:
        """
        Enforce Veo's chain limits without a round-trip.

        Raises:
            ChainLimitExceeded: mismatched settings, too many extensions or
                too much input video
        """
        if config.aspect_ratio != prior_ref.aspect_ratio:
            raise ChainLimitExceeded(
                f"Extension aspect ratio {config.aspect_ratio} does not match "
                f"base aspect ratio {prior_ref.aspect_ratio}",
                limit="aspect_ratio",
                actual=config.aspect_ratio,
                maximum=prior_ref.aspect_ratio,
            )
        if config.resolution != prior_ref.resolution:
            raise ChainLimitExceeded(
                f"Extension resolution {config.resolution} does not match "
                f"base resolution {prior_ref.resolution}",
                limit="resolution",
                actual=config.resolution,
                maximum=prior_ref.resolution,
            )
        if prior_ref.extension_count >= self.config.max_extensions:
            raise ChainLimitExceeded(
                f"Video already extended {prior_ref.extension_count} times "
                f"(max {self.config.max_extensions})",
                limit="extension_count",
                actual=prior_ref.extension_count,
                maximum=self.config.max_extensions,
            )
        if prior_ref.total_duration > self.config.max_extension_input_seconds:
            raise ChainLimitExceeded(
                f"Input video is {prior_ref.total_duration}s "
                f"(max {self.config.max_extension_input_seconds}s)",
                limit="input_duration",
                actual=prior_ref.total_duration,
                maximum=self.config.max_extension_input_seconds,
            )

    # -------------------------------------------------------------------------
    # Operation plumbing
    # -------------------------------------------------------------------------

    @staticmethod
    def _image_payload(image: ImageInput) -> Dict[str, str]:
        return {"bytesBase64Encoded": image.to_base64(), "mimeType": image.mime_type}

    def _build_parameters(self, mode: str, config: VeoClipConfig) -> Dict[str, Any]:
        parameters = {
            "aspectRatio": config.aspect_ratio,
            "resolution": config.resolution,
            "personGeneration": PERSON_GENERATION[mode],
        }
        if config.negative_prompt:
            parameters["negativePrompt"] = config.negative_prompt
        if config.seed is not None:
            parameters["seed"] = config.seed
        return parameters

    async def _generate(
        self,
        mode: str,
        instance: Dict[str, Any],
        config: VeoClipConfig,
        duration: int,
        index: int = 0,
        lineage: Optional[Dict[str, Any]] = None,
    ) -> Clip:
        """
        Submit, poll, download and wrap one Veo job as a completed Clip.

        With ``lineage`` the clip also carries an extendable ``VeoVideoRef``
        holding the returned video object unchanged.
        """
        payload = {
            "instances": [instance],
            "parameters": self._build_parameters(mode, config),
        }
        endpoint = f"{self.base_url}/models/{self.config.model}:predictLongRunning"

        logger.debug(f"Veo {mode} parameters: {payload['parameters']}")
        data = await self._request("POST", endpoint, json=payload)

        name = data.get("name")
        if not name:
            raise BackendError(self.backend_name, f"No operation name in response: {data}")

        operation = Operation(name=name, backend=self.backend_name, payload=data)
        logger.info(f"Veo operation submitted: {name}")

        done = await self._poll_operation(operation, config.polling)
        video = self._extract_video(done, name)

        if video.get("uri"):
            local_path = await self.download_video(
                video["uri"], prefix=f"veo_{mode}", authenticated=True
            )
        else:
            local_path = await self.save_inline_video(
                base64.b64decode(video["bytesBase64Encoded"]), prefix=f"veo_{mode}"
            )

        mime_type = video.get("mimeType", "video/mp4")
        artifact_ref = None
        if lineage is not None:
            artifact_ref = VeoVideoRef(
                uri=video.get("uri", ""), mime_type=mime_type, video=video, **lineage
            )

        return Clip(
            index=index,
            source_backend=self.backend_name,
            status=ClipStatus.COMPLETED,
            duration_seconds=duration,
            local_path=local_path,
            remote_url=video.get("uri"),
            prompt=instance.get("prompt"),
            operation_name=name,
            generation_params={
                "mode": mode,
                "model": self.config.model,
                "mime_type": mime_type,
                "person_generation": PERSON_GENERATION[mode],
                "poll_attempts": operation.attempts,
            },
            completed_at=datetime.now(),
            artifact_ref=artifact_ref,
        )

    async def _fetch_operation(self, operation: Operation) -> Dict[str, Any]:
        return await self._request(
            "GET", f"{self.base_url}/{operation.name}", operation=operation.name
        )

    def _is_done(self, payload: Dict[str, Any]) -> bool:
        return bool(payload.get("done"))

    def _operation_error(self, payload: Dict[str, Any]) -> Optional[str]:
        if "error" in payload:
            return self._format_error(payload["error"])
        return None

    def _extract_video(self, payload: Dict[str, Any], operation_name: str) -> Dict[str, Any]:
        """
        Pull the generated video handle out of a finished operation.

        Content-filtered jobs finish without samples; their filter reasons
        are surfaced as the backend error.
        """
        response = payload.get("response", {})
        samples: List[Dict[str, Any]] = (
            response.get("generateVideoResponse", {}).get("generatedSamples")
            or response.get("generatedVideos")
            or []
        )
        if samples and isinstance(samples[0].get("video"), dict):
            video = samples[0]["video"]
            if video.get("uri") or video.get("bytesBase64Encoded"):
                return video

        reasons = response.get("generateVideoResponse", {}).get("raiMediaFilteredReasons")
        message = (
            f"Video filtered: {self._format_error(reasons)}"
            if reasons
            else f"No video in operation response: {self._format_error(response)}"
        )
        raise BackendError(self.backend_name, message, operation=operation_name)
