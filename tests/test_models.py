"""Data models: requests, artifact handles and chain aggregation."""

import dataclasses

import pytest

from longform_video.core.models import (
    ChainResult,
    ChainStatus,
    Clip,
    ClipStatus,
    GenerationRequest,
    ImageInput,
    LongCatVideoRef,
    Operation,
    OperationState,
    VeoVideoRef,
)


def test_request_is_immutable():
    request = GenerationRequest(prompt="X")
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.prompt = "Y"


def test_image_from_file(tmp_path):
    path = tmp_path / "ref.JPG"
    path.write_bytes(b"\xff\xd8data")

    image = ImageInput.from_file(path)

    assert image.mime_type == "image/jpeg"
    assert image.to_data_uri().startswith("data:image/jpeg;base64,")


def test_artifact_refs_are_bound_to_backend():
    assert VeoVideoRef(uri="files/a").backend == "veo"
    assert LongCatVideoRef(request_id="r").backend == "longcat"
    assert VeoVideoRef(uri="files/a", mime_type="video/mp4").to_payload() == {
        "uri": "files/a",
        "mimeType": "video/mp4",
    }


def test_operation_lifecycle():
    operation = Operation(name="op", backend="veo")
    assert operation.state == OperationState.SUBMITTED
    assert not operation.state.is_terminal

    operation.mark_polling()
    assert operation.state == OperationState.POLLING

    operation.mark_failed("boom")
    assert operation.state.is_terminal
    assert operation.error_message == "boom"
    assert operation.finished_at is not None


def _clip(index, backend, status=ClipStatus.COMPLETED, duration=7):
    return Clip(index=index, source_backend=backend, status=status, duration_seconds=duration)


def test_usage_sums_to_completed_clips_across_backends():
    result = ChainResult(
        status=ChainStatus.PARTIAL,
        clips=[
            _clip(0, "veo", duration=8),
            _clip(1, "veo"),
            _clip(2, "longcat", duration=30),
            _clip(3, "veo", status=ClipStatus.FAILED),
        ],
    )

    assert result.provider_usage == {"veo": 2, "longcat": 1}
    assert sum(result.provider_usage.values()) == result.completed_clips == 3
    assert result.total_clips == 4
    assert result.failed_clips == 1
    assert result.total_duration_seconds == 45


def test_chain_result_to_dict():
    result = ChainResult(status=ChainStatus.COMPLETED, clips=[_clip(0, "veo", duration=8)], backend="veo")

    data = result.to_dict()

    assert data["status"] == "completed"
    assert data["clips"][0]["status"] == "completed"
    assert data["provider_usage"] == {"veo": 1}
    assert data["total_duration_seconds"] == 8
