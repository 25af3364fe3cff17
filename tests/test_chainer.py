"""Scene extension chains on the Veo backend."""

from pathlib import Path

import httpx
import pytest

from longform_video.api.veo import VeoBackend
from longform_video.core.config import VeoConfig
from longform_video.core.exceptions import BackendError
from longform_video.core.models import ChainStatus, ClipStatus
from longform_video.workflow.chainer import SceneExtensionChain


@pytest.fixture
def chain(veo_backend):
    return SceneExtensionChain(veo_backend)


@pytest.mark.parametrize(
    "target, extensions",
    [(1, 0), (8, 0), (9, 1), (15, 1), (16, 2), (29, 3), (148, 20), (600, 20)],
)
def test_plan_extensions(chain, target, extensions):
    assert chain.plan_extensions(target) == extensions


def test_build_prompts_reuses_base_prompt():
    prompts = SceneExtensionChain.build_prompts("base", ["first"], 3)
    assert prompts == ["first", "base", "base"]
    assert SceneExtensionChain.build_prompts("base", ["a", "b", "c"], 2) == ["a", "b"]


async def test_completed_chain_duration_is_exact(chain, veo_api, config):
    result = await chain.run("Opening", ["one", "two", "three"], config.veo_clip_config())

    assert result.status == ChainStatus.COMPLETED
    assert result.total_clips == 4
    assert result.completed_clips == 4
    assert result.total_duration_seconds == 8 + 3 * 7
    assert result.provider_usage == {"veo": 4}
    assert result.final_artifact_path == result.clips[-1].local_path

    assert [clip.index for clip in result.clips] == [0, 1, 2, 3]
    assert [clip.time_range for clip in result.clips] == [(0, 8), (8, 15), (15, 22), (22, 29)]
    assert not result.clips[0].is_extension
    assert all(clip.is_extension for clip in result.clips[1:])


async def test_each_extension_uses_previous_handle(chain, veo_api, config):
    result = await chain.run("Opening", ["one", "two"], config.veo_clip_config())

    for i in (1, 2):
        anchor = veo_api.submissions[i]["instances"][0]["video"]["uri"]
        assert anchor == result.clips[i - 1].artifact_ref.uri


async def test_second_extension_failure_yields_partial(chain, veo_api, config):
    # op1 = base, op2 = first extension, op3 = second extension
    veo_api.fail_ops = {3}

    result = await chain.run("Opening", ["one", "two", "three"], config.veo_clip_config())

    assert result.status == ChainStatus.PARTIAL
    assert result.is_partial
    assert result.completed_clips == 2
    assert result.total_clips == 3
    assert result.failed_clips == 1
    assert len(veo_api.submissions) == 3

    failed = result.clips[2]
    assert failed.status == ClipStatus.FAILED
    assert "Quota exceeded" in failed.error_message
    assert failed.operation_name.endswith("/op3")
    assert result.error["error"] == "BackendError"

    for clip in result.clips[:2]:
        assert Path(clip.local_path).exists()
    assert result.final_artifact_path == result.clips[1].local_path
    assert result.total_duration_seconds == 15
    assert sum(result.provider_usage.values()) == result.completed_clips


async def test_base_failure_propagates(chain, veo_api, config):
    veo_api.fail_ops = {1}

    with pytest.raises(BackendError):
        await chain.run("Opening", ["one"], config.veo_clip_config())


async def test_local_limit_stops_chain_without_submitting(veo_api, config):
    client = httpx.AsyncClient(transport=httpx.MockTransport(veo_api))
    backend = VeoBackend(
        config=VeoConfig(max_extension_input_seconds=10),
        api_key="test-gemini-key",
        output_path=config.output.base_path,
        client=client,
    )

    result = await SceneExtensionChain(backend).run(
        "Opening", ["one", "two", "three"], config.veo_clip_config()
    )
    await client.aclose()

    assert result.status == ChainStatus.PARTIAL
    assert result.completed_clips == 2
    assert result.error["error"] == "ChainLimitExceeded"
    assert len(veo_api.submissions) == 2
