"""LongCat backend against a fake fal.ai queue."""

from pathlib import Path

import pytest

from longform_video.api.longcat import frame_count
from longform_video.core.exceptions import BackendError, ValidationError
from longform_video.core.models import ClipStatus, ImageInput, LongCatVideoRef

from .conftest import VIDEO_BYTES


@pytest.mark.parametrize(
    "duration, fps, frames",
    [(180, 24, 4320), (600, 30, 18000), (1, 25, 25), (10.5, 24, 252), (2.01, 25, 50)],
)
def test_frame_count(duration, fps, frames):
    assert frame_count(duration, fps) == frames


async def test_text_to_video_requests_exact_frame_count(longcat_backend, fal_api, config):
    clip = await longcat_backend.text_to_video(
        "A slow pan across a city", config.longcat_clip_config(duration=180, fps=24)
    )

    path, body = fal_api.submissions[0]
    assert path == "/fal-ai/longcat-video/text-to-video/720p"
    assert body["num_frames"] == 4320
    assert body["fps"] == 24
    assert "image_url" not in body
    assert fal_api.requests[0].headers["authorization"] == "Key test-fal-key"

    assert clip.status == ClipStatus.COMPLETED
    assert clip.duration_seconds == 180
    assert clip.time_range == (0, 180)
    assert isinstance(clip.artifact_ref, LongCatVideoRef)
    assert clip.remote_url == "https://fal.media/files/longcat.mp4"
    assert Path(clip.local_path).read_bytes() == VIDEO_BYTES
    assert clip.generation_params["seed"] == 1234
    assert clip.generation_params["poll_attempts"] == 2


async def test_image_to_video_sends_data_uri(longcat_backend, fal_api, config):
    image = ImageInput(data=b"\xff\xd8jpeg", mime_type="image/jpeg")

    await longcat_backend.image_to_video(
        "Bring the portrait to life", image, config.longcat_clip_config(duration=30, seed=7)
    )

    path, body = fal_api.submissions[0]
    assert path == "/fal-ai/longcat-video/image-to-video/720p"
    assert body["image_url"].startswith("data:image/jpeg;base64,")
    assert body["motion_bucket_id"] == 127
    assert body["seed"] == 7


async def test_validation_names_every_field(longcat_backend, fal_api, config):
    clip_config = config.longcat_clip_config(
        duration=901,
        fps=60,
        aspect_ratio="21:9",
        num_inference_steps=5,
        guidance_scale=20,
    )

    with pytest.raises(ValidationError) as exc_info:
        await longcat_backend.text_to_video("X", clip_config)

    assert set(exc_info.value.fields) == {
        "duration",
        "fps",
        "aspect_ratio",
        "num_inference_steps",
        "guidance_scale",
    }
    assert fal_api.requests == []


async def test_motion_bucket_checked_in_image_mode(longcat_backend, fal_api, config):
    image = ImageInput(data=b"png")

    with pytest.raises(ValidationError) as exc_info:
        await longcat_backend.image_to_video("X", image, config.longcat_clip_config(motion_bucket_id=0))

    assert exc_info.value.fields == ["motion_bucket_id"]
    assert fal_api.requests == []


async def test_image_to_video_requires_image(longcat_backend, fal_api, config):
    with pytest.raises(ValidationError):
        await longcat_backend.image_to_video("X", None, config.longcat_clip_config())
    assert fal_api.requests == []


async def test_queue_error_is_surfaced(longcat_backend, fal_api, config):
    fal_api.error = "Insufficient credits"

    with pytest.raises(BackendError) as exc_info:
        await longcat_backend.text_to_video("X", config.longcat_clip_config(duration=200))

    assert exc_info.value.backend_name == "longcat"
    assert exc_info.value.raw_message == "Insufficient credits"
    assert exc_info.value.details["operation"] == "req-1"
