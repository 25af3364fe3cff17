"""Shared fixtures: fake Gemini and fal.ai HTTP APIs behind httpx.MockTransport."""

import json

import httpx
import pytest

from longform_video.api.longcat import LongCatBackend
from longform_video.api.veo import VeoBackend
from longform_video.core.config import Config

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"


class FakeVeoApi:
    """
    Minimal Gemini long-running-operation API.

    Every submission gets operation ``op<N>``; the first status fetch
    finishes it. Operations listed in ``fail_ops`` finish with an error.
    """

    def __init__(self, fail_ops=(), pending_polls=0, error=None):
        self.fail_ops = set(fail_ops)
        self.pending_polls = pending_polls
        self.error = error or {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}
        self.submissions = []
        self.requests = []
        self.polls = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith(":predictLongRunning"):
            self.submissions.append(json.loads(request.content))
            name = f"models/veo-3.1-generate-preview/operations/op{len(self.submissions)}"
            return httpx.Response(200, json={"name": name})

        if "/operations/" in path:
            number = int(path.rsplit("/op", 1)[1])
            self.polls[number] = self.polls.get(number, 0) + 1
            name = f"models/veo-3.1-generate-preview/operations/op{number}"
            if self.polls[number] <= self.pending_polls:
                return httpx.Response(200, json={"name": name})
            if number in self.fail_ops:
                return httpx.Response(200, json={"name": name, "done": True, "error": self.error})
            return httpx.Response(200, json={
                "name": name,
                "done": True,
                "response": {
                    "generateVideoResponse": {
                        "generatedSamples": [
                            {"video": {"uri": f"https://files.example/veo/video{number}.mp4"}}
                        ]
                    }
                },
            })

        if request.url.host == "files.example":
            return httpx.Response(200, content=VIDEO_BYTES)

        return httpx.Response(404, json={"error": {"message": f"unexpected {path}"}})


class FakeFalQueue:
    """Minimal fal.ai queue API: submit, status, result, file download."""

    def __init__(self, in_progress_polls=1, error=None):
        self.in_progress_polls = in_progress_polls
        self.error = error
        self.submissions = []
        self.requests = []
        self.status_polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST":
            self.submissions.append((path, json.loads(request.content)))
            request_id = f"req-{len(self.submissions)}"
            base = "https://queue.fal.run/fal-ai/longcat-video/requests"
            return httpx.Response(200, json={
                "request_id": request_id,
                "status_url": f"{base}/{request_id}/status",
                "response_url": f"{base}/{request_id}",
            })

        if path.endswith("/status"):
            self.status_polls += 1
            if self.error:
                return httpx.Response(200, json={"status": "COMPLETED", "error": self.error})
            if self.status_polls <= self.in_progress_polls:
                return httpx.Response(200, json={"status": "IN_PROGRESS"})
            return httpx.Response(200, json={"status": "COMPLETED"})

        if "/requests/" in path:
            return httpx.Response(200, json={
                "video": {"url": "https://fal.media/files/longcat.mp4"},
                "seed": 1234,
            })

        if request.url.host == "fal.media":
            return httpx.Response(200, content=VIDEO_BYTES)

        return httpx.Response(404, json={"detail": f"unexpected {path}"})


@pytest.fixture
def config(tmp_path):
    return Config.from_dict({
        "polling": {"interval_seconds": 0, "max_attempts": 3},
        "output": {"base_path": str(tmp_path / "videos")},
    })


@pytest.fixture
def veo_api():
    return FakeVeoApi()


@pytest.fixture
def fal_api():
    return FakeFalQueue()


@pytest.fixture
async def veo_backend(config, veo_api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(veo_api))
    backend = VeoBackend(
        config=config.veo,
        api_key="test-gemini-key",
        output_path=config.output.base_path,
        client=client,
    )
    yield backend
    await client.aclose()


@pytest.fixture
async def longcat_backend(config, fal_api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fal_api))
    backend = LongCatBackend(
        config=config.longcat,
        api_key="test-fal-key",
        output_path=config.output.base_path,
        client=client,
    )
    yield backend
    await client.aclose()
