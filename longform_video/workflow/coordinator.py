"""
Video Generation Coordinator
============================

Routes a generation request to the right backend and returns one
ChainResult.

Backends:
- veo: 8s-148s, scene-based generation with native extensions
- longcat: 149s-900s, single-shot long-form generation

Usage:
    async with VideoCoordinator.from_config(Config.load()) as coordinator:
        result = await coordinator.generate_video(
            GenerationRequest(prompt="A lighthouse at dusk", target_duration_seconds=36)
        )
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Dict, List, Sequence, Union

from ..api.base import BaseVideoBackend
from ..api.factory import get_backend
from ..api.longcat import VALID_ASPECT_RATIOS as LONGCAT_ASPECT_RATIOS, LongCatBackend
from ..api.veo import VeoBackend
from ..core.config import Config, VeoConfig
from ..core.exceptions import (
    BackendError,
    ConfigurationError,
    CoordinatorError,
    InvalidRequest,
    OperationTimeout,
)
from ..core.models import ChainResult, ChainStatus, Clip, GenerationMode, GenerationRequest
from ..utils.storage import save_metadata
from .chainer import SceneExtensionChain
from .selector import LONGCAT, VEO, select_provider
from .validator import validate_request

logger = logging.getLogger(__name__)


class VideoCoordinator:
    """
    Validates requests, selects a backend, dispatches, and aggregates.

    Backends are built once and held for the coordinator's lifetime. Requests
    share nothing mutable, so ``generate_video`` may run concurrently.
    """

    def __init__(
        self,
        veo: Optional[VeoBackend] = None,
        longcat: Optional[LongCatBackend] = None,
        config: Optional[Config] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            veo: Extension-capable backend
            longcat: Long-duration backend
            config: Settings for per-call configs, output and fallback
        """
        self.config = config or Config()
        self.backends: Dict[str, BaseVideoBackend] = {}
        if veo is not None:
            self.backends[VEO] = veo
        if longcat is not None:
            self.backends[LONGCAT] = longcat

        logger.info(f"VideoCoordinator initialized with backends: {sorted(self.backends)}")

    @classmethod
    def from_config(cls, config: Optional[Config] = None, **kwargs) -> "VideoCoordinator":
        """Build both backends from configuration (API keys from the environment)."""
        config = config or Config()
        return cls(
            veo=get_backend(VEO, config, **kwargs),
            longcat=get_backend(LONGCAT, config, **kwargs),
            config=config,
        )

    async def close(self) -> None:
        for backend in self.backends.values():
            await backend.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _backend(self, name: str) -> BaseVideoBackend:
        backend = self.backends.get(name)
        if backend is None:
            raise ConfigurationError(f"Backend not configured: {name}", config_key=name)
        return backend

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def select_provider(self, request: GenerationRequest) -> str:
        return select_provider(request, self.config.veo)

    def provider_info(self) -> Dict[str, Dict[str, Any]]:
        """
        Capability envelope of each backend, as configured.

        Durations are in seconds. ``configured`` tells whether the
        coordinator holds an instance of that backend.
        """
        veo, longcat = self.config.veo, self.config.longcat
        return {
            VEO: {
                "name": "Veo 3.1 (Google Gemini)",
                "model": veo.model,
                "configured": VEO in self.backends,
                "min_duration": veo.base_duration,
                "max_duration": veo.max_chain_duration,
                "base_duration": veo.base_duration,
                "extension_duration": veo.extension_duration,
                "max_extensions": veo.max_extensions,
                "modes": [mode.value for mode in GenerationMode],
                "aspect_ratios": sorted(VeoConfig.VALID_ASPECT_RATIOS),
            },
            LONGCAT: {
                "name": "LongCat (fal.ai)",
                "model": longcat.text_to_video_model,
                "configured": LONGCAT in self.backends,
                "min_duration": 1,
                "max_duration": longcat.max_duration,
                "modes": [GenerationMode.TEXT_TO_VIDEO.value, GenerationMode.IMAGE_TO_VIDEO.value],
                "aspect_ratios": list(LONGCAT_ASPECT_RATIOS),
            },
        }

    async def generate_video(self, request: GenerationRequest) -> ChainResult:
        """
        Produce one video for a request.

        Args:
            request: The generation request

        Returns:
            ChainResult: ``completed``, or ``partial`` when a chain stopped
            after at least one clip

        Raises:
            InvalidRequest: the request is malformed
            BackendError / OperationTimeout / ValidationError /
            ChainLimitExceeded: no clip could be produced at all
        """
        validate_request(
            request,
            known_backends=(VEO, LONGCAT),
            max_duration=self.config.generation.max_duration,
        )
        backend_name = self.select_provider(request)

        logger.info(
            f"Video request: mode={request.mode.value} "
            f"duration={request.target_duration_seconds}s backend={backend_name} "
            f"aspect_ratio={request.aspect_ratio}"
        )

        try:
            result = await self._dispatch(backend_name, request)
        except (BackendError, OperationTimeout) as e:
            fallback = self.config.generation.fallback_backend
            if request.provider_override or not fallback or fallback == backend_name:
                raise
            # No clip exists yet, so switching backend cannot orphan an artifact
            logger.warning(f"{backend_name} failed before any clip ({e}); falling back to {fallback}")
            result = await self._dispatch(fallback, request)

        await self._persist(result, request)

        logger.info(
            f"Video {result.status.value}: {result.completed_clips}/{result.total_clips} clips, "
            f"{result.total_duration_seconds}s, usage={result.provider_usage}"
        )
        return result

    async def generate_batch(
        self,
        requests: Sequence[GenerationRequest],
    ) -> List[Union[ChainResult, CoordinatorError]]:
        """
        Run independent requests concurrently.

        At most ``generation.max_concurrent_requests`` run at once. A request
        that fails outright yields its exception in place of a result.
        """
        semaphore = asyncio.Semaphore(self.config.generation.max_concurrent_requests)

        async def run_one(request: GenerationRequest):
            async with semaphore:
                try:
                    return await self.generate_video(request)
                except CoordinatorError as e:
                    logger.error(f"Request failed: {e}")
                    return e

        return list(await asyncio.gather(*(run_one(r) for r in requests)))

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def _dispatch(self, backend_name: str, request: GenerationRequest) -> ChainResult:
        if backend_name == LONGCAT:
            return await self._generate_with_longcat(request)
        if backend_name == VEO:
            return await self._generate_with_veo(request)
        raise InvalidRequest(f"Unknown backend: {backend_name}", errors=[f"unknown backend {backend_name}"])

    async def _generate_with_longcat(self, request: GenerationRequest) -> ChainResult:
        backend: LongCatBackend = self._backend(LONGCAT)
        clip_config = self.config.longcat_clip_config(
            duration=request.target_duration_seconds,
            aspect_ratio=request.aspect_ratio,
            seed=request.seed,
        )

        if request.mode == GenerationMode.TEXT_TO_VIDEO:
            clip = await backend.text_to_video(request.prompt, clip_config)
        elif request.mode == GenerationMode.IMAGE_TO_VIDEO:
            image = request.reference_images[0] if request.reference_images else request.first_frame
            clip = await backend.image_to_video(request.prompt, image, clip_config)
        else:
            raise InvalidRequest(
                f"Unsupported mode for {LONGCAT}: {request.mode.value}",
                errors=[f"{request.mode.value} is not supported by {LONGCAT}"],
            )

        return self._single_clip_result(clip, LONGCAT)

    async def _generate_with_veo(self, request: GenerationRequest) -> ChainResult:
        backend: VeoBackend = self._backend(VEO)
        clip_config = self.config.veo_clip_config(
            aspect_ratio=request.aspect_ratio,
            resolution=request.resolution,
            negative_prompt=request.negative_prompt,
            seed=request.seed,
        )

        if request.mode == GenerationMode.TEXT_TO_VIDEO:
            chain = SceneExtensionChain(backend)
            extensions = chain.plan_extensions(request.target_duration_seconds)
            if extensions == 0:
                clip = await backend.generate_base(request.prompt, clip_config)
                return self._single_clip_result(clip, VEO)

            prompts = chain.build_prompts(request.prompt, request.extension_prompts, extensions)
            return await chain.run(request.prompt, prompts, clip_config)

        if request.target_duration_seconds > backend.base_duration:
            logger.warning(
                f"{request.mode.value} on {VEO} is single-shot; producing "
                f"{backend.base_duration}s of the requested {request.target_duration_seconds}s"
            )

        if request.mode == GenerationMode.IMAGE_TO_VIDEO:
            references = request.reference_images or (request.first_frame,)
            clip = await backend.generate_with_references(request.prompt, references, clip_config)
        else:
            clip = await backend.generate_interpolated(
                request.prompt, request.first_frame, request.last_frame, clip_config
            )

        return self._single_clip_result(clip, VEO)

    @staticmethod
    def _single_clip_result(clip: Clip, backend_name: str) -> ChainResult:
        clip.index = 0
        clip.time_range = (0, clip.duration_seconds)
        return ChainResult(
            status=ChainStatus.COMPLETED,
            clips=[clip],
            backend=backend_name,
            final_artifact_path=clip.local_path,
        )

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    async def _persist(self, result: ChainResult, request: GenerationRequest) -> None:
        """Make sure the final artifact is on local disk and record metadata."""
        completed = [clip for clip in result.clips if clip.is_completed]
        if not completed:
            return

        last = completed[-1]
        if not last.local_path and last.remote_url:
            backend = self._backend(last.source_backend)
            last.local_path = await backend.download_video(
                last.remote_url, prefix=f"{last.source_backend}_final"
            )
        result.final_artifact_path = last.local_path

        if self.config.output.save_metadata and result.final_artifact_path:
            metadata = result.to_dict()
            metadata["request"] = {
                "prompt": request.prompt,
                "mode": request.mode.value,
                "target_duration_seconds": request.target_duration_seconds,
                "aspect_ratio": request.aspect_ratio,
                "resolution": request.resolution,
                "provider_override": request.provider_override,
            }
            result.metadata_path = save_metadata(
                metadata, Path(result.final_artifact_path).with_suffix(".json")
            )
