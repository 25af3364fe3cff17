"""
Configuration System
====================

Centralized, validated configuration management with typed dataclasses.

Two layers live here:
- ``Config``: process-level settings loaded once from YAML (backend
  envelopes, endpoints, output directory, default polling budget)
- ``VeoClipConfig`` / ``LongCatClipConfig``: per-call settings handed to an
  adapter method. Each carries its own ``PollingConfig`` so concurrent
  requests never share a polling interval implicitly.
"""

import os
import re
import logging
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Optional, Dict, Any, Union

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class PollingConfig:
    """How an adapter waits on one asynchronous backend operation."""

    interval_seconds: float = 10.0
    max_attempts: int = 60

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.interval_seconds < 0:
            raise ConfigurationError(
                f"interval_seconds must be >= 0, got {self.interval_seconds}",
                config_key="polling.interval_seconds",
            )
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be >= 1, got {self.max_attempts}",
                config_key="polling.max_attempts",
            )

    @property
    def timeout_seconds(self) -> float:
        return self.interval_seconds * self.max_attempts


@dataclass
class VeoConfig:
    """Google Veo (extension-capable backend) settings."""

    model: str = "veo-3.1-generate-preview"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: str = "GEMINI_API_KEY"
    request_timeout: int = 120

    # Capability envelope, trusted as backend constants
    base_duration: int = 8
    extension_duration: int = 7
    max_extensions: int = 20
    max_extension_input_seconds: int = 141

    aspect_ratio: str = "16:9"
    resolution: str = "720p"

    VALID_ASPECT_RATIOS = {"16:9", "9:16"}
    VALID_RESOLUTIONS = {"720p", "1080p"}

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.aspect_ratio not in self.VALID_ASPECT_RATIOS:
            raise ConfigurationError(
                f"Invalid aspect ratio: {self.aspect_ratio}",
                config_key="veo.aspect_ratio",
            )
        if self.resolution not in self.VALID_RESOLUTIONS:
            raise ConfigurationError(
                f"Invalid resolution: {self.resolution}",
                config_key="veo.resolution",
            )
        for name in ("base_duration", "extension_duration", "max_extensions"):
            if getattr(self, name) < 1:
                raise ConfigurationError(
                    f"{name} must be >= 1, got {getattr(self, name)}",
                    config_key=f"veo.{name}",
                )

    @property
    def max_chain_duration(self) -> int:
        """Longest video reachable by base + every allowed extension."""
        return self.base_duration + self.max_extensions * self.extension_duration


@dataclass
class LongCatConfig:
    """LongCat on fal.ai (long-duration, single-shot backend) settings."""

    text_to_video_model: str = "fal-ai/longcat-video/text-to-video/720p"
    image_to_video_model: str = "fal-ai/longcat-video/image-to-video/720p"
    base_url: str = "https://queue.fal.run"
    api_key_env: str = "FAL_KEY"
    request_timeout: int = 300

    max_duration: int = 900
    fps: int = 24
    aspect_ratio: str = "16:9"
    num_inference_steps: int = 40
    guidance_scale: float = 7.5
    motion_bucket_id: int = 127


@dataclass
class OutputConfig:
    """Output and storage settings."""

    base_path: str = "./output/videos"
    filename_prefix: str = "video"
    save_metadata: bool = True


@dataclass
class GenerationConfig:
    """Coordinator-level generation settings."""

    # Serves a request only when its first clip failed and no override was given
    fallback_backend: Optional[str] = None
    max_concurrent_requests: int = 3
    max_duration: int = 900

    VALID_BACKENDS = {"veo", "longcat"}

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.fallback_backend and self.fallback_backend not in self.VALID_BACKENDS:
            raise ConfigurationError(
                f"Invalid fallback backend: {self.fallback_backend}",
                config_key="generation.fallback_backend",
            )
        if self.max_concurrent_requests < 1:
            raise ConfigurationError(
                f"max_concurrent_requests must be >= 1, got {self.max_concurrent_requests}",
                config_key="generation.max_concurrent_requests",
            )


# =============================================================================
# Per-call Configuration
# =============================================================================


@dataclass
class VeoClipConfig:
    """Settings for a single Veo adapter call."""

    aspect_ratio: str = "16:9"
    resolution: str = "720p"
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    polling: PollingConfig = field(default_factory=PollingConfig)


@dataclass
class LongCatClipConfig:
    """Settings for a single LongCat adapter call."""

    duration: float = 180
    fps: int = 24
    aspect_ratio: str = "16:9"
    num_inference_steps: int = 40
    guidance_scale: float = 7.5
    motion_bucket_id: int = 127
    seed: Optional[int] = None
    polling: PollingConfig = field(default_factory=PollingConfig)


# =============================================================================
# Loading
# =============================================================================


DEFAULT_SEARCH_PATHS = (
    Path("config") / "defaults.yaml",
    Path("defaults.yaml"),
    Path.home() / ".longform-video" / "config.yaml",
)

# ${VAR} or ${VAR:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")


def interpolate_env(value: Any) -> Any:
    """Substitute environment references in every string of a YAML tree."""
    if isinstance(value, dict):
        return {key: interpolate_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_env(item) for item in value]
    if isinstance(value, str):
        return _ENV_REF.sub(
            lambda m: os.environ.get(m.group("name"), m.group("fallback") or ""), value
        )
    return value


@dataclass
class Config:
    """
    Process-level settings, one section per concern.

    Sections are validated as they are built; an unknown key in any section
    is a ConfigurationError rather than a silent no-op.
    """

    veo: VeoConfig = field(default_factory=VeoConfig)
    longcat: LongCatConfig = field(default_factory=LongCatConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    _raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    SECTIONS = {
        "veo": VeoConfig,
        "longcat": LongCatConfig,
        "polling": PollingConfig,
        "output": OutputConfig,
        "generation": GenerationConfig,
    }

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Read the first YAML file found and build a validated Config.

        Args:
            path: Explicit file, tried before the default locations

        Returns:
            Config built from the file, or all defaults when none exists
        """
        candidates = ([Path(path)] if path else []) + list(DEFAULT_SEARCH_PATHS)
        source = next((candidate for candidate in candidates if candidate.is_file()), None)

        if source is None:
            logger.info("No config file found, using defaults")
            return cls()

        logger.info(f"Loading config from {source}")
        try:
            data = yaml.safe_load(source.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {source}: {e}", config_key=str(source))

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Top level of {source} must be a mapping",
                config_key=str(source),
                expected_type="mapping",
            )

        return cls.from_dict(interpolate_env(data))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build every section from a plain mapping."""
        sections = {}
        for name, section_type in cls.SECTIONS.items():
            values = data.get(name) or {}
            try:
                sections[name] = section_type(**values)
            except TypeError as e:
                raise ConfigurationError(f"Invalid {name} configuration: {e}", config_key=name)
        return cls(_raw=data, **sections)

    def to_dict(self) -> Dict[str, Any]:
        return {name: asdict(getattr(self, name)) for name in self.SECTIONS}

    def veo_clip_config(self, **overrides) -> VeoClipConfig:
        """Per-call Veo settings seeded from this configuration."""
        clip_config = VeoClipConfig(
            aspect_ratio=self.veo.aspect_ratio,
            resolution=self.veo.resolution,
            polling=replace(self.polling),
        )
        return replace(clip_config, **overrides)

    def longcat_clip_config(self, **overrides) -> LongCatClipConfig:
        """Per-call LongCat settings seeded from this configuration."""
        clip_config = LongCatClipConfig(
            fps=self.longcat.fps,
            aspect_ratio=self.longcat.aspect_ratio,
            num_inference_steps=self.longcat.num_inference_steps,
            guidance_scale=self.longcat.guidance_scale,
            motion_bucket_id=self.longcat.motion_bucket_id,
            polling=replace(self.polling),
        )
        return replace(clip_config, **overrides)
