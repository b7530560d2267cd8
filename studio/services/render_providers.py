"""
Third-party compositing providers. Each one turns a RenderRequest into the
provider's own job description and reports job status in common terms.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from studio.config.settings import Settings
from studio.models.render_model import RenderPlaceholder, RenderRequest
from studio.utils.errors import RenderConfigurationError, RenderProviderError

logger = logging.getLogger(__name__)


class RenderState(str, enum.Enum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class SubmittedJob:
    render_id: Optional[str]
    provider: str


@dataclass
class JobStatus:
    state: RenderState
    url: Optional[str] = None
    detail: Optional[str] = None


class RenderProvider:
    name = "provider"

    def __init__(self, api_key: str, api_url: str, http: httpx.AsyncClient):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.http = http

    async def submit(self, request: RenderRequest) -> SubmittedJob:
        raise NotImplementedError

    async def poll(self, job: SubmittedJob) -> JobStatus:
        raise NotImplementedError

    def _check(self, response: httpx.Response) -> dict:
        if response.is_error:
            raise RenderProviderError(f"{self.name.capitalize()} API error: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise RenderProviderError(f"{self.name.capitalize()} API returned invalid JSON") from e

    def _check_object(self, response: httpx.Response) -> dict:
        data = self._check(response)
        if not isinstance(data, dict):
            raise RenderProviderError(f"{self.name.capitalize()} API returned an unexpected body")
        return data


# -------------------------------------------------
# Shotstack
# -------------------------------------------------

SHOTSTACK_PENDING = ("queued", "fetching", "rendering", "saving")


def shotstack_position(p: RenderPlaceholder) -> str:
    if p.position and p.position.x:
        return f"{p.position.x:g}% {p.position.y:g}%"
    return "center"


def shotstack_clip(p: RenderPlaceholder) -> dict:
    if p.type == "text":
        style = p.style
        font_size = (style.fontSize if style and style.fontSize else None) or 24
        color = (style.color if style and style.color else None) or "#ffffff"
        font_family = (style.fontFamily if style and style.fontFamily else None) or "Arial"
        asset = {
            "type": "html",
            "html": f'<p style="font-size: {font_size}px; color: {color}">{p.value}</p>',
            "css": f"p {{ font-family: {font_family}; }}",
            "width": 1920,
            "height": 1080,
            "position": "center",
        }
    else:
        asset = {"type": "image", "src": p.value}

    return {
        "asset": asset,
        "start": p.startTime,
        "length": p.duration,
        "position": shotstack_position(p),
    }


def shotstack_payload(request: RenderRequest) -> dict:
    return {
        "timeline": {
            "soundtrack": {"src": request.templateUrl},
            "tracks": [{"clips": [shotstack_clip(p) for p in request.placeholders]}],
        },
        "output": {
            "format": request.outputFormat,
            "resolution": "hd" if request.quality == "high" else "sd",
        },
    }


class ShotstackProvider(RenderProvider):
    name = "shotstack"

    def _headers(self) -> dict:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    async def submit(self, request: RenderRequest) -> SubmittedJob:
        logger.info("[Shotstack] Starting render...")
        response = await self.http.post(
            f"{self.api_url}/render",
            json=shotstack_payload(request),
            headers=self._headers(),
        )
        data = self._check(response)

        try:
            render_id = data["response"]["id"]
        except (KeyError, TypeError):
            raise RenderProviderError("Shotstack API error: missing render id")

        logger.info(f"[Shotstack] Render submitted, ID: {render_id}")
        return SubmittedJob(render_id=render_id, provider=self.name)

    async def poll(self, job: SubmittedJob) -> JobStatus:
        response = await self.http.get(
            f"{self.api_url}/render/{job.render_id}",
            headers={"x-api-key": self.api_key},
        )
        body = self._check_object(response).get("response") or {}
        if not isinstance(body, dict):
            raise RenderProviderError("Shotstack API returned an unexpected body")
        status = body.get("status")
        logger.info(f"[Shotstack] Render status: {status}")

        if status == "done":
            return JobStatus(RenderState.DONE, url=body.get("url"))
        if status == "failed":
            return JobStatus(RenderState.FAILED, detail=body.get("error"))
        return JobStatus(RenderState.PENDING, detail=status)


# -------------------------------------------------
# Creatomate
# -------------------------------------------------

CREATOMATE_FAILED = ("failed",)


class CreatomateProvider(RenderProvider):
    name = "creatomate"

    def __init__(self, api_key: str, api_url: str, http: httpx.AsyncClient, template_id: Optional[str]):
        super().__init__(api_key, api_url, http)
        self.template_id = template_id

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def submit(self, request: RenderRequest) -> SubmittedJob:
        if not self.template_id:
            raise RenderConfigurationError("CREATOMATE_TEMPLATE_ID is not configured")

        logger.info("[Creatomate] Starting render...")
        modifications = {p.id: p.value for p in request.placeholders}
        response = await self.http.post(
            f"{self.api_url}/renders",
            json={
                "template_id": self.template_id,
                "modifications": modifications,
                "output_format": request.outputFormat,
            },
            headers=self._headers(),
        )
        data = self._check(response)

        renders = data if isinstance(data, list) else [data]
        if not renders or not isinstance(renders[0], dict) or not renders[0].get("id"):
            raise RenderProviderError("Creatomate API error: missing render id")

        render_id = renders[0]["id"]
        logger.info(f"[Creatomate] Render submitted, ID: {render_id}")
        return SubmittedJob(render_id=render_id, provider=self.name)

    async def poll(self, job: SubmittedJob) -> JobStatus:
        response = await self.http.get(
            f"{self.api_url}/renders/{job.render_id}",
            headers=self._headers(),
        )
        body = self._check_object(response)
        status = body.get("status")
        logger.info(f"[Creatomate] Render status: {status}")

        if status == "succeeded":
            return JobStatus(RenderState.DONE, url=body.get("url"))
        if status in CREATOMATE_FAILED:
            return JobStatus(RenderState.FAILED, detail=body.get("error_message"))
        return JobStatus(RenderState.PENDING, detail=status)


def build_provider(settings: Settings, http: httpx.AsyncClient) -> RenderProvider:
    name = settings.resolve_provider()

    if name == "shotstack":
        return ShotstackProvider(settings.shotstack_api_key, settings.shotstack_api_url, http)
    if name == "creatomate":
        return CreatomateProvider(
            settings.creatomate_api_key,
            settings.creatomate_api_url,
            http,
            settings.creatomate_template_id,
        )

    raise RenderConfigurationError("Video processing API not configured")
