"""
Scene Extension Chain
=====================

Builds one continuous video out of a Veo base clip and a sequence of
native extensions, each anchored to the previous clip's artifact handle.
"""

import logging
import math
from typing import List, Sequence

from ..api.veo import VeoBackend
from ..core.config import VeoClipConfig
from ..core.exceptions import CoordinatorError
from ..core.models import ChainResult, ChainStatus, Clip, ClipStatus

logger = logging.getLogger(__name__)


class SceneExtensionChain:
    """
    Drives repeated ``extend`` calls on an extension-capable backend.

    Clips are strictly sequential: clip i+1 is generated from clip i's
    ``artifact_ref``. A failed extension ends the chain; every clip completed
    before it is kept and the result is marked partial.
    """

    def __init__(self, backend: VeoBackend):
        self.backend = backend

    @property
    def base_duration(self) -> int:
        return self.backend.base_duration

    @property
    def extension_duration(self) -> int:
        return self.backend.extension_duration

    def plan_extensions(self, target_duration: float) -> int:
        """
        Number of extensions needed to reach a target duration.

        Capped at the backend's maximum; the cap is logged.
        """
        if target_duration <= self.base_duration:
            return 0

        needed = math.ceil((target_duration - self.base_duration) / self.extension_duration)
        if needed > self.backend.max_extensions:
            logger.warning(
                f"{target_duration}s needs {needed} extensions; capping at "
                f"{self.backend.max_extensions} "
                f"({self.expected_duration(self.backend.max_extensions)}s)"
            )
            return self.backend.max_extensions
        return needed

    def expected_duration(self, extension_count: int) -> int:
        """Chain length from backend constants; media is never probed."""
        return self.base_duration + extension_count * self.extension_duration

    @staticmethod
    def build_prompts(
        base_prompt: str,
        extension_prompts: Sequence[str],
        count: int,
    ) -> List[str]:
        """One prompt per extension, reusing the base prompt where none was given."""
        if len(extension_prompts) > count:
            logger.warning(
                f"{len(extension_prompts)} extension prompts given for {count} "
                f"extensions; ignoring the rest"
            )
        return [
            extension_prompts[i] if i < len(extension_prompts) else base_prompt
            for i in range(count)
        ]

    def _time_range(self, index: int):
        if index == 0:
            return (0, self.base_duration)
        start = self.expected_duration(index - 1)
        return (start, start + self.extension_duration)

    async def run(
        self,
        base_prompt: str,
        extension_prompts: Sequence[str],
        config: VeoClipConfig,
    ) -> ChainResult:
        """
        Generate the base clip, then one extension per prompt.

        A failure of the base clip propagates: there is nothing to keep.

        Args:
            base_prompt: Prompt for the base clip
            extension_prompts: One prompt per extension, in order
            config: Settings shared by every clip of the chain

        Returns:
            ChainResult, ``completed`` or ``partial``
        """
        planned = 1 + len(extension_prompts)
        logger.info(
            f"Long video: base + {len(extension_prompts)} extensions "
            f"(~{self.expected_duration(len(extension_prompts))}s)"
        )

        logger.info(f"Clip 1/{planned} (BASE - {self.base_duration}s)")
        base = await self.backend.generate_base(base_prompt, config)
        base.index = 0
        base.time_range = self._time_range(0)
        clips: List[Clip] = [base]

        for i, prompt in enumerate(extension_prompts, start=1):
            logger.info(f"Clip {i + 1}/{planned} (EXTENSION - {self.extension_duration}s)")
            try:
                clip = await self.backend.extend(clips[-1].artifact_ref, prompt, config)
            except CoordinatorError as e:
                logger.error(f"Extension {i} failed, keeping {len(clips)} completed clip(s): {e}")
                clips.append(
                    Clip(
                        index=i,
                        source_backend=self.backend.backend_name,
                        status=ClipStatus.FAILED,
                        duration_seconds=self.extension_duration,
                        time_range=self._time_range(i),
                        prompt=prompt,
                        is_extension=True,
                        operation_name=e.details.get("operation"),
                        error_message=e.message,
                    )
                )
                return ChainResult(
                    status=ChainStatus.PARTIAL,
                    clips=clips,
                    backend=self.backend.backend_name,
                    final_artifact_path=clips[-2].local_path,
                    error=e.to_dict(),
                )

            clip.index = i
            clip.time_range = self._time_range(i)
            clips.append(clip)

        result = ChainResult(
            status=ChainStatus.COMPLETED,
            clips=clips,
            backend=self.backend.backend_name,
            final_artifact_path=clips[-1].local_path,
        )
        logger.info(
            f"Long video complete: {result.completed_clips} clips, "
            f"{result.total_duration_seconds}s"
        )
        return result
