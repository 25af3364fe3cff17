"""
LongCat Backend
===============

Long-duration, single-shot backend: LongCat video on the fal.ai queue API.

One call yields the whole requested duration (up to 15 minutes); there is
no extension concept. The duration is sent as a frame count, so
``num_frames = round(duration * fps)``.
"""

import logging
import math
import random
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union

import httpx

from ..core.config import LongCatConfig, LongCatClipConfig
from ..core.exceptions import BackendError, ValidationError
from ..core.models import Clip, ClipStatus, ImageInput, LongCatVideoRef, Operation
from ..core.security import sanitize_prompt
from .base import BaseVideoBackend
from .factory import register_backend

logger = logging.getLogger(__name__)


VALID_FPS = (24, 25, 30)
VALID_ASPECT_RATIOS = ("16:9", "9:16", "1:1", "4:3", "3:4")
INFERENCE_STEPS_RANGE = (20, 50)
GUIDANCE_SCALE_RANGE = (5.0, 15.0)
MOTION_BUCKET_RANGE = (1, 255)

TERMINAL_STATUS = "COMPLETED"


def frame_count(duration: float, fps: int) -> int:
    """Frames for a duration, rounded half-up to an integer."""
    return int(math.floor(duration * fps + 0.5))


@register_backend("longcat")
class LongCatBackend(BaseVideoBackend):
    """
    fal.ai LongCat video generation backend.

    Supports:
    - text_to_video: generate a video from a text prompt
    - image_to_video: animate a reference image
    """

    def __init__(
        self,
        config: Optional[LongCatConfig] = None,
        api_key: Optional[str] = None,
        output_path: Union[str, Path] = "./output/videos",
        client: Optional[httpx.AsyncClient] = None,
        filename_prefix: str = "video",
    ):
        self.config = config or LongCatConfig()
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
        return "longcat"

    @property
    def env_key_name(self) -> str:
        return self.config.api_key_env

    def _get_default_base_url(self) -> str:
        return "https://queue.fal.run"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def max_duration(self) -> int:
        return self.config.max_duration

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_config(self, config: LongCatClipConfig, image_mode: bool = False) -> None:
        """
        Check every parameter before submission.

        Raises:
            ValidationError: naming every offending field
        """
        errors: Dict[str, str] = {}

        if config.duration is None or not 1 <= config.duration <= self.config.max_duration:
            errors["duration"] = f"must be between 1 and {self.config.max_duration} seconds"
        if config.fps not in VALID_FPS:
            errors["fps"] = f"must be one of {', '.join(str(f) for f in VALID_FPS)}"
        if config.aspect_ratio not in VALID_ASPECT_RATIOS:
            errors["aspect_ratio"] = f"must be one of {', '.join(VALID_ASPECT_RATIOS)}"

        low, high = INFERENCE_STEPS_RANGE
        if not low <= config.num_inference_steps <= high:
            errors["num_inference_steps"] = f"must be between {low} and {high}"

        low, high = GUIDANCE_SCALE_RANGE
        if not low <= config.guidance_scale <= high:
            errors["guidance_scale"] = f"must be between {low} and {high}"

        if image_mode:
            low, high = MOTION_BUCKET_RANGE
            if not low <= config.motion_bucket_id <= high:
                errors["motion_bucket_id"] = f"must be between {low} and {high}"

        if errors:
            summary = "; ".join(f"{name} {constraint}" for name, constraint in errors.items())
            raise ValidationError(f"Invalid LongCat parameters: {summary}", errors=errors)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def text_to_video(self, prompt: str, config: LongCatClipConfig) -> Clip:
        """
        Generate a video of ``config.duration`` seconds from a text prompt.

        Args:
            prompt: Text description of the video to generate
            config: Duration, fps and quality settings

        Returns:
            Completed Clip covering the whole duration
        """
        self.validate_config(config)
        logger.info(f"LongCat text-to-video ({config.duration}s @ {config.fps}fps): {prompt[:60]}")

        payload = self._base_input(prompt, config)
        return await self._generate(self.config.text_to_video_model, payload, config)

    async def image_to_video(
        self,
        prompt: str,
        reference_image: ImageInput,
        config: LongCatClipConfig,
    ) -> Clip:
        """
        Animate a reference image into a video of ``config.duration`` seconds.

        Args:
            prompt: Text description guiding the animation
            reference_image: Image bytes + MIME type, sent as a data URI
            config: Duration, fps, quality and motion settings

        Returns:
            Completed Clip covering the whole duration
        """
        if reference_image is None:
            raise ValidationError(
                "Invalid LongCat parameters: reference_image required",
                errors={"reference_image": "required"},
            )
        self.validate_config(config, image_mode=True)
        logger.info(f"LongCat image-to-video ({config.duration}s @ {config.fps}fps): {prompt[:60]}")

        payload = self._base_input(prompt, config)
        payload["image_url"] = reference_image.to_data_uri()
        payload["motion_bucket_id"] = config.motion_bucket_id
        return await self._generate(self.config.image_to_video_model, payload, config)

    def _base_input(self, prompt: str, config: LongCatClipConfig) -> Dict[str, Any]:
        return {
            "prompt": sanitize_prompt(prompt),
            "num_frames": frame_count(config.duration, config.fps),
            "fps": config.fps,
            "aspect_ratio": config.aspect_ratio,
            "num_inference_steps": config.num_inference_steps,
            "guidance_scale": config.guidance_scale,
            "seed": config.seed if config.seed is not None else random.randint(0, 999999),
        }

    async def _generate(
        self,
        model: str,
        payload: Dict[str, Any],
        config: LongCatClipConfig,
    ) -> Clip:
        """Submit to the fal queue, poll, fetch the result and download it."""
        loggable = {k: v for k, v in payload.items() if k != "image_url"}
        logger.debug(f"LongCat payload: {loggable}")
        data = await self._request("POST", f"{self.base_url}/{model}", json=payload)

        request_id = data.get("request_id")
        if not request_id:
            raise BackendError(self.backend_name, f"No request_id in response: {data}")

        # Queue URLs are keyed by the app id, not the full model path
        app_id = "/".join(model.split("/")[:2])
        operation = Operation(
            name=request_id,
            backend=self.backend_name,
            payload=data,
            metadata={
                "status_url": data.get("status_url")
                or f"{self.base_url}/{app_id}/requests/{request_id}/status",
                "response_url": data.get("response_url")
                or f"{self.base_url}/{app_id}/requests/{request_id}",
            },
        )
        logger.info(f"LongCat request queued: {request_id}")

        await self._poll_operation(operation, config.polling)

        result = await self._request(
            "GET", operation.metadata["response_url"], operation=request_id
        )
        video = result.get("video") or {}
        video_url = video.get("url") if isinstance(video, dict) else video
        if not video_url:
            raise BackendError(
                self.backend_name,
                f"No video URL in response: {self._format_error(result)}",
                operation=request_id,
            )

        local_path = await self.download_video(video_url, prefix="longcat")

        return Clip(
            index=0,
            source_backend=self.backend_name,
            status=ClipStatus.COMPLETED,
            duration_seconds=config.duration,
            time_range=(0, config.duration),
            artifact_ref=LongCatVideoRef(request_id=request_id, url=video_url),
            local_path=local_path,
            remote_url=video_url,
            prompt=payload["prompt"],
            operation_name=request_id,
            generation_params={
                "model": model,
                "num_frames": payload["num_frames"],
                "fps": payload["fps"],
                "aspect_ratio": payload["aspect_ratio"],
                "seed": result.get("seed", payload["seed"]),
                "poll_attempts": operation.attempts,
            },
            completed_at=datetime.now(),
        )

    async def _fetch_operation(self, operation: Operation) -> Dict[str, Any]:
        return await self._request(
            "GET", operation.metadata["status_url"], operation=operation.name
        )

    def _is_done(self, payload: Dict[str, Any]) -> bool:
        return str(payload.get("status", "")).upper() == TERMINAL_STATUS or bool(payload.get("error"))

    def _operation_error(self, payload: Dict[str, Any]) -> Optional[str]:
        if payload.get("error"):
            return self._format_error(payload["error"])
        return None
