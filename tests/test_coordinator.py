"""End-to-end coordinator behaviour against fake backends."""

import dataclasses
import json
from pathlib import Path

import httpx
import pytest

from longform_video.api.longcat import LongCatBackend
from longform_video.api.veo import VeoBackend
from longform_video.core.config import GenerationConfig
from longform_video.core.exceptions import BackendError, InvalidRequest
from longform_video.core.models import ChainStatus, GenerationRequest, ImageInput
from longform_video.workflow.coordinator import VideoCoordinator

IMAGE = ImageInput(data=b"\x89PNG", mime_type="image/png")


@pytest.fixture
def coordinator(veo_backend, longcat_backend, config):
    return VideoCoordinator(veo=veo_backend, longcat=longcat_backend, config=config)


async def test_eight_second_text_request_is_one_call(coordinator, veo_api, fal_api):
    result = await coordinator.generate_video(
        GenerationRequest(prompt="X", mode="text-to-video", target_duration_seconds=8)
    )

    assert len(veo_api.submissions) == 1
    assert fal_api.submissions == []
    assert result.status == ChainStatus.COMPLETED
    assert result.total_clips == 1
    assert result.backend == "veo"
    assert result.clips[0].time_range == (0, 8)
    assert Path(result.final_artifact_path).exists()


async def test_six_hundred_seconds_goes_to_longcat(coordinator, veo_api, fal_api):
    result = await coordinator.generate_video(
        GenerationRequest(prompt="A documentary about tides", target_duration_seconds=600)
    )

    assert veo_api.requests == []
    assert len(fal_api.submissions) == 1
    assert fal_api.submissions[0][1]["num_frames"] == 600 * 24
    assert result.status == ChainStatus.COMPLETED
    assert result.total_clips == 1
    assert result.total_duration_seconds == 600
    assert result.provider_usage == {"longcat": 1}


async def test_multi_segment_request_drives_chain(coordinator, veo_api):
    request = GenerationRequest(
        prompt="A lighthouse at dusk",
        target_duration_seconds=29,
        extension_prompts=["The lamp is lit", "The beam crosses the sea"],
    )

    result = await coordinator.generate_video(request)

    assert result.status == ChainStatus.COMPLETED
    assert result.total_clips == 4
    assert result.total_duration_seconds == 29
    prompts = [s["instances"][0]["prompt"] for s in veo_api.submissions]
    assert prompts == [
        "A lighthouse at dusk",
        "The lamp is lit",
        "The beam crosses the sea",
        "A lighthouse at dusk",
    ]


async def test_partial_chain_is_returned_not_raised(coordinator, veo_api):
    veo_api.fail_ops = {3}

    result = await coordinator.generate_video(GenerationRequest(prompt="X", target_duration_seconds=29))

    assert result.status == ChainStatus.PARTIAL
    assert result.completed_clips == 2
    assert result.total_clips == 3
    assert sum(result.provider_usage.values()) == result.completed_clips
    assert result.final_artifact_path == result.clips[1].local_path
    assert result.error["details"]["backend"] == "veo"


async def test_metadata_written_beside_final_video(coordinator):
    result = await coordinator.generate_video(GenerationRequest(prompt="X", target_duration_seconds=15))

    metadata_path = Path(result.metadata_path)
    assert metadata_path == Path(result.final_artifact_path).with_suffix(".json")

    metadata = json.loads(metadata_path.read_text())
    assert metadata["status"] == "completed"
    assert metadata["completed_clips"] == 2
    assert metadata["request"]["target_duration_seconds"] == 15
    assert "saved_at" in metadata


async def test_invalid_request_never_reaches_backends(coordinator, veo_api, fal_api):
    with pytest.raises(InvalidRequest) as exc_info:
        await coordinator.generate_video(
            GenerationRequest(prompt="", mode="frame-to-video", target_duration_seconds=8)
        )

    assert len(exc_info.value.errors) == 3
    assert veo_api.requests == [] and fal_api.requests == []


async def test_image_request_uses_reference_generation(coordinator, veo_api):
    result = await coordinator.generate_video(
        GenerationRequest(prompt="X", mode="image-to-video", reference_images=[IMAGE])
    )

    assert len(veo_api.submissions) == 1
    assert "referenceImages" in veo_api.submissions[0]["instances"][0]
    assert result.total_clips == 1


async def test_frame_request_uses_interpolation(coordinator, veo_api):
    await coordinator.generate_video(
        GenerationRequest(prompt="X", mode="frame-to-video", first_frame=IMAGE, last_frame=IMAGE)
    )

    assert "lastFrame" in veo_api.submissions[0]["instances"][0]


async def test_override_beats_duration(coordinator, veo_api, fal_api):
    result = await coordinator.generate_video(
        GenerationRequest(prompt="X", target_duration_seconds=20, provider_override="longcat")
    )

    assert veo_api.requests == []
    assert result.backend == "longcat"


async def test_frame_mode_is_rejected_on_longcat(coordinator, fal_api):
    with pytest.raises(InvalidRequest):
        await coordinator.generate_video(
            GenerationRequest(
                prompt="X",
                mode="frame-to-video",
                first_frame=IMAGE,
                last_frame=IMAGE,
                target_duration_seconds=300,
            )
        )
    assert fal_api.requests == []


async def test_failure_before_first_clip_raises(coordinator, veo_api):
    veo_api.fail_ops = {1}

    with pytest.raises(BackendError):
        await coordinator.generate_video(GenerationRequest(prompt="X", target_duration_seconds=29))


async def test_fallback_serves_request_when_first_clip_fails(veo_backend, longcat_backend, config, veo_api, fal_api):
    config = dataclasses.replace(config, generation=GenerationConfig(fallback_backend="longcat"))
    coordinator = VideoCoordinator(veo=veo_backend, longcat=longcat_backend, config=config)
    veo_api.fail_ops = {1}

    result = await coordinator.generate_video(GenerationRequest(prompt="X", target_duration_seconds=29))

    assert result.backend == "longcat"
    assert result.provider_usage == {"longcat": 1}
    assert fal_api.submissions[0][1]["num_frames"] == 29 * 24


async def test_fallback_is_skipped_with_override(veo_backend, longcat_backend, config, veo_api, fal_api):
    config = dataclasses.replace(config, generation=GenerationConfig(fallback_backend="longcat"))
    coordinator = VideoCoordinator(veo=veo_backend, longcat=longcat_backend, config=config)
    veo_api.fail_ops = {1}

    with pytest.raises(BackendError):
        await coordinator.generate_video(
            GenerationRequest(prompt="X", target_duration_seconds=8, provider_override="veo")
        )
    assert fal_api.requests == []


async def test_batch_returns_errors_in_place(coordinator):
    results = await coordinator.generate_batch([
        GenerationRequest(prompt="X", target_duration_seconds=8),
        GenerationRequest(prompt="", target_duration_seconds=8),
        GenerationRequest(prompt="Y", target_duration_seconds=300),
    ])

    assert results[0].status == ChainStatus.COMPLETED
    assert isinstance(results[1], InvalidRequest)
    assert results[2].backend == "longcat"


async def test_from_config_builds_both_backends(config, monkeypatch, veo_api):
    monkeypatch.setenv("GEMINI_API_KEY", "env-gemini-key")
    monkeypatch.setenv("FAL_KEY", "env-fal-key")

    async with httpx.AsyncClient(transport=httpx.MockTransport(veo_api)) as client:
        coordinator = VideoCoordinator.from_config(config, client=client)
        assert isinstance(coordinator.backends["veo"], VeoBackend)
        assert isinstance(coordinator.backends["longcat"], LongCatBackend)

        await coordinator.generate_video(GenerationRequest(prompt="X", target_duration_seconds=8))
        await coordinator.close()

    assert veo_api.requests[0].headers["x-goog-api-key"] == "env-gemini-key"


async def test_nan_duration_is_rejected_before_selection(coordinator, veo_api, fal_api):
    results = await coordinator.generate_batch([
        GenerationRequest(prompt="X", target_duration_seconds=float("nan")),
        GenerationRequest(prompt="Y", target_duration_seconds=8),
    ])

    assert isinstance(results[0], InvalidRequest)
    assert results[0].errors == ["target_duration_seconds must be finite"]
    assert results[1].status == ChainStatus.COMPLETED
    assert fal_api.requests == []


def test_provider_info_reports_duration_envelopes(coordinator):
    info = coordinator.provider_info()

    assert info["veo"]["max_duration"] == 148
    assert info["veo"]["min_duration"] == 8
    assert info["veo"]["extension_duration"] == 7
    assert info["veo"]["max_extensions"] == 20
    assert info["longcat"]["max_duration"] == 900
    assert info["longcat"]["min_duration"] == 1
    assert "4:3" in info["longcat"]["aspect_ratios"]
    assert "frame-to-video" not in info["longcat"]["modes"]
    assert info["veo"]["configured"] and info["longcat"]["configured"]


def test_provider_info_without_backends():
    info = VideoCoordinator().provider_info()

    assert not info["veo"]["configured"]
    assert info["veo"]["max_duration"] == 148
