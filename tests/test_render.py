import asyncio
import os

import httpx
import pytest

from studio.config.settings import Settings
from studio.models.render_model import RenderRequest
from studio.routes.render import get_orchestrator_factory
from studio.services.render_orchestrator import RenderJob, RenderOrchestrator
from studio.services.render_providers import (
    CreatomateProvider,
    RenderState,
    ShotstackProvider,
    build_provider,
    shotstack_payload,
)
from studio.services.storage import MediaStorage
from studio.utils.errors import (
    RenderConfigurationError,
    RenderProviderError,
    RenderTimeoutError,
    StorageUploadError,
    TemplateFetchError,
)

SHOTSTACK = "https://api.shotstack.test/v1"
CREATOMATE = "https://api.creatomate.test/v1"
VIDEO_URL = "https://cdn.provider.test/out.mp4"
TEMPLATE_URL = "https://bucket.test/template.mp4"

REQUEST = {
    "templateUrl": TEMPLATE_URL,
    "placeholders": [
        {"id": "title", "type": "text", "value": "Hello", "startTime": 0, "duration": 2,
         "position": {"x": 10, "y": 20}, "style": {"fontSize": 40, "color": "#ff0000"}},
        {"id": "logo", "type": "image", "value": "https://cdn.test/logo.png", "startTime": 2, "duration": 1.5},
    ],
    "outputFormat": "mp4",
    "quality": "high",
}


class ShotstackFake:
    """Answers submit, status polls and the final download."""

    def __init__(self, statuses, download_status=200, render_id="rnd-1", template_status=200):
        self.statuses = list(statuses)
        self.download_status = download_status
        self.render_id = render_id
        self.template_status = template_status
        self.submitted = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == TEMPLATE_URL:
            return httpx.Response(self.template_status, content=b"TEMPLATE")
        if request.method == "POST" and url == f"{SHOTSTACK}/render":
            assert request.headers["x-api-key"] == "sk-test"
            self.submitted.append(request.content)
            return httpx.Response(201, json={"success": True, "response": {"id": self.render_id}})
        if request.method == "GET" and request.url.host == "api.shotstack.test":
            self.polls += 1
            status = self.statuses.pop(0)
            body = {"status": status}
            if status == "done":
                body["url"] = VIDEO_URL
            return httpx.Response(200, json={"response": body})
        if url == VIDEO_URL:
            return httpx.Response(self.download_status, content=b"VIDEO-BYTES")
        return httpx.Response(404)


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def orchestrator(handler, storage, max_attempts=5, provider_cls=ShotstackProvider):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    if provider_cls is ShotstackProvider:
        provider = ShotstackProvider("sk-test", SHOTSTACK, http)
    else:
        provider = CreatomateProvider("ck-test", CREATOMATE, http, template_id="tpl-1")
    sleeps = Sleeps()
    return RenderOrchestrator(provider, storage, http, poll_interval=5, max_attempts=max_attempts, sleep=sleeps), sleeps


@pytest.fixture
def storage(tmp_path):
    return MediaStorage(str(tmp_path / "media"), "http://testserver")


def test_shotstack_payload_builds_timeline():
    payload = shotstack_payload(RenderRequest(**REQUEST))

    clips = payload["timeline"]["tracks"][0]["clips"]
    assert payload["timeline"]["soundtrack"] == {"src": "https://bucket.test/template.mp4"}
    assert payload["output"] == {"format": "mp4", "resolution": "hd"}
    assert clips[0]["asset"]["html"] == '<p style="font-size: 40px; color: #ff0000">Hello</p>'
    assert clips[0]["position"] == "10% 20%"
    assert clips[1] == {
        "asset": {"type": "image", "src": "https://cdn.test/logo.png"},
        "start": 2,
        "length": 1.5,
        "position": "center",
    }


def test_render_polls_until_done_and_stores(storage, tmp_path):
    fake = ShotstackFake(["queued", "rendering", "done"])
    orch, sleeps = orchestrator(fake, storage)
    job = RenderJob(RenderRequest(**REQUEST))

    result = asyncio.run(orch.render(job.request, job))

    assert result.success
    assert result.renderId == "rnd-1"
    assert result.fileName == "rnd-1.mp4"
    assert result.videoUrl == "http://testserver/media/rendered-videos/rnd-1.mp4"
    assert (tmp_path / "media" / "rendered-videos" / "rnd-1.mp4").read_bytes() == b"VIDEO-BYTES"
    assert sleeps.calls == [5, 5, 5]
    assert job.history == [RenderState.SUBMITTED, RenderState.PENDING, RenderState.PENDING, RenderState.DONE]


def test_provider_failure_publishes_nothing(storage, tmp_path):
    orch, _ = orchestrator(ShotstackFake(["rendering", "failed"]), storage)

    with pytest.raises(RenderProviderError, match="Shotstack render failed"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))

    assert not (tmp_path / "media").exists()


def test_attempt_budget_exhausted_is_timeout(storage, tmp_path):
    fake = ShotstackFake(["rendering"] * 10)
    orch, sleeps = orchestrator(fake, storage, max_attempts=3)
    job = RenderJob(RenderRequest(**REQUEST))

    with pytest.raises(RenderTimeoutError, match="Render timeout"):
        asyncio.run(orch.render(job.request, job))

    assert fake.polls == 3
    assert len(sleeps.calls) == 3
    assert job.state == RenderState.TIMEOUT
    assert not (tmp_path / "media").exists()


def test_submit_error_surfaces_provider_message(storage):
    def handler(request):
        if str(request.url) == TEMPLATE_URL:
            return httpx.Response(200)
        return httpx.Response(400, text="bad timeline")

    orch, _ = orchestrator(handler, storage)

    with pytest.raises(RenderProviderError, match="Shotstack API error: bad timeline"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))


def test_download_failure(storage):
    orch, _ = orchestrator(ShotstackFake(["done"], download_status=403), storage)

    with pytest.raises(RenderProviderError, match="Failed to download render"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))


def test_storage_failure_is_distinct(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way")
    storage = MediaStorage(str(blocker), "http://testserver")
    orch, _ = orchestrator(ShotstackFake(["done"]), storage)

    with pytest.raises(StorageUploadError, match="Upload failed"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))


def test_creatomate_submit_and_poll(storage):
    seen = {}

    def handler(request):
        url = str(request.url)
        if url == TEMPLATE_URL:
            return httpx.Response(200)
        if request.method == "POST" and url == f"{CREATOMATE}/renders":
            assert request.headers["authorization"] == "Bearer ck-test"
            seen["body"] = request.content
            return httpx.Response(200, json=[{"id": "cm-9", "status": "planned"}])
        if url == f"{CREATOMATE}/renders/cm-9":
            return httpx.Response(200, json={"id": "cm-9", "status": "succeeded", "url": VIDEO_URL})
        if url == VIDEO_URL:
            return httpx.Response(200, content=b"CM")
        return httpx.Response(404)

    orch, _ = orchestrator(handler, storage, provider_cls=CreatomateProvider)
    result = asyncio.run(orch.render(RenderRequest(**REQUEST)))

    assert result.renderId == "cm-9"
    assert result.fileName == "cm-9.mp4"
    assert b'"modifications":{"title":"Hello","logo":"https://cdn.test/logo.png"}' in seen["body"].replace(b" ", b"")


def test_creatomate_without_template_id_is_configuration_error(storage):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200 if str(r.url) == TEMPLATE_URL else 500)))
    provider = CreatomateProvider("ck-test", CREATOMATE, http, template_id=None)
    orch = RenderOrchestrator(provider, storage, http, sleep=Sleeps())

    with pytest.raises(RenderConfigurationError):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))


def test_build_provider_selection():
    http = httpx.AsyncClient()

    assert isinstance(build_provider(Settings(shotstack_api_key="a", creatomate_api_key="b"), http), ShotstackProvider)
    assert isinstance(build_provider(Settings(creatomate_api_key="b"), http), CreatomateProvider)
    assert isinstance(
        build_provider(Settings(render_provider="creatomate", shotstack_api_key="a", creatomate_api_key="b"), http),
        CreatomateProvider,
    )
    with pytest.raises(RenderConfigurationError):
        build_provider(Settings(), http)
    with pytest.raises(RenderConfigurationError):
        build_provider(Settings(render_provider="shotstack", creatomate_api_key="b"), http)


def test_unreachable_template_stops_before_submit(storage):
    fake = ShotstackFake(["done"], template_status=404)
    orch, _ = orchestrator(fake, storage)

    with pytest.raises(TemplateFetchError, match="Failed to fetch template: Not Found"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))

    assert fake.submitted == []
    assert fake.polls == 0


def test_render_id_with_path_separators_is_not_used_as_file_name(storage, tmp_path):
    orch, _ = orchestrator(ShotstackFake(["done"], render_id="../../escape"), storage)

    result = asyncio.run(orch.render(RenderRequest(**REQUEST)))

    assert result.renderId == "../../escape"
    assert "/" not in result.fileName and ".." not in result.fileName
    assert os.listdir(tmp_path / "media" / "rendered-videos") == [result.fileName]


def test_storage_strips_directories_from_file_name(storage, tmp_path):
    name, _ = storage.save(b"x", "../outside.mp4")

    assert name == "outside.mp4"
    assert (tmp_path / "media" / "rendered-videos" / "outside.mp4").exists()
    assert not (tmp_path / "outside.mp4").exists()


def test_non_object_status_body_is_provider_error(storage):
    def handler(request):
        url = str(request.url)
        if url == TEMPLATE_URL:
            return httpx.Response(200)
        if request.method == "POST":
            return httpx.Response(201, json={"response": {"id": "rnd-1"}})
        return httpx.Response(200, json=["not", "an", "object"])

    orch, _ = orchestrator(handler, storage)

    with pytest.raises(RenderProviderError, match="Shotstack API returned an unexpected body"):
        asyncio.run(orch.render(RenderRequest(**REQUEST)))


# -----------------------------------------------------------
# Route
# -----------------------------------------------------------

def test_route_without_provider_is_configuration_error(client):
    resp = client.post("/render", json=REQUEST)

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Video processing API not configured"
    assert "SHOTSTACK_API_KEY" in body["message"]


def test_route_success(app, client, storage):
    fake = ShotstackFake(["done"])
    app.dependency_overrides[get_orchestrator_factory] = lambda: (lambda: orchestrator(fake, storage)[0])

    resp = client.post("/render", json=REQUEST)

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "videoUrl": "http://testserver/media/rendered-videos/rnd-1.mp4",
        "renderId": "rnd-1",
        "fileName": "rnd-1.mp4",
    }


@pytest.mark.parametrize("statuses,message", [
    (["failed"], "Shotstack render failed"),
    (["rendering"] * 5, "Render timeout"),
])
def test_route_failures_share_envelope(app, client, storage, statuses, message):
    fake = ShotstackFake(statuses)
    app.dependency_overrides[get_orchestrator_factory] = lambda: (lambda: orchestrator(fake, storage, max_attempts=2)[0])

    resp = client.post("/render", json=REQUEST)

    assert resp.status_code == 500
    assert resp.json() == {"error": message}


def test_render_shared_template(app, client, storage):
    template = {
        "backgroundVideo": "https://bucket.test/template.mp4",
        "placeholders": [{"id": "p1", "name": "Title", "type": "text", "x": 5, "y": 5, "fontSize": 24, "color": "#000"}],
        "iterations": [
            {"id": "i1", "values": {"p1": "One"}, "duration": 1000},
            {"id": "i2", "values": {"p1": "Two"}, "duration": 2500},
        ],
    }
    created = client.post("/templates", json={"template_data": template}).json()
    fake = ShotstackFake(["done"])
    app.dependency_overrides[get_orchestrator_factory] = lambda: (lambda: orchestrator(fake, storage)[0])

    resp = client.post("/render/shared", params={"id": created["id"]})

    assert resp.status_code == 200
    assert resp.json()["renderId"] == "rnd-1"
    assert b'"start":1.0' in fake.submitted[0].replace(b" ", b"")


def test_render_shared_template_without_remote_video(client):
    created = client.post("/templates", json={"template_data": {"placeholders": [], "iterations": []}}).json()

    resp = client.post("/render/shared", params={"id": created["id"]})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Template cannot be rendered"}


def test_storage_generates_name_when_missing(storage):
    name, url = storage.save(b"x", extension="webm")

    assert name.endswith(".webm")
    assert url == f"http://testserver/media/rendered-videos/{name}"
    assert os.path.exists(os.path.join(storage.root, "rendered-videos", name))


def test_route_reports_unreachable_template(app, client, storage):
    fake = ShotstackFake(["done"], template_status=403)
    app.dependency_overrides[get_orchestrator_factory] = lambda: (lambda: orchestrator(fake, storage)[0])

    resp = client.post("/render", json=REQUEST)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch template: Forbidden"}
