import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import httpx

from studio.config.settings import Settings
from studio.models.render_model import RenderRequest, RenderResult
from studio.services.render_providers import (
    JobStatus,
    RenderProvider,
    RenderState,
    SubmittedJob,
    build_provider,
)
from studio.services.storage import MediaStorage
from studio.utils.errors import RenderProviderError, RenderTimeoutError, TemplateFetchError

logger = logging.getLogger(__name__)

SAFE_RENDER_ID = re.compile(r"[A-Za-z0-9_-]+")


@dataclass
class RenderJob:
    """Transient bookkeeping for one render; dropped once the request ends."""
    request: RenderRequest
    state: RenderState = RenderState.SUBMITTED
    submitted: Optional[SubmittedJob] = None
    attempts: int = 0
    history: List[RenderState] = field(default_factory=list)

    def move(self, state: RenderState) -> None:
        self.state = state
        self.history.append(state)


class RenderOrchestrator:
    def __init__(
        self,
        provider: RenderProvider,
        storage: MediaStorage,
        http: httpx.AsyncClient,
        poll_interval: float = 5.0,
        max_attempts: int = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.storage = storage
        self.http = http
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient, storage: MediaStorage) -> "RenderOrchestrator":
        return cls(
            build_provider(settings, http),
            storage,
            http,
            poll_interval=settings.render_poll_interval,
            max_attempts=settings.render_max_attempts,
        )

    async def render(self, request: RenderRequest, job: Optional[RenderJob] = None) -> RenderResult:
        job = job or RenderJob(request)

        logger.info(
            f"[Render] Processing request: template={request.templateUrl} "
            f"placeholders={len(request.placeholders)} format={request.outputFormat} "
            f"provider={self.provider.name}"
        )

        await self.check_template(request.templateUrl)

        try:
            job.submitted = await self.provider.submit(request)
        except httpx.HTTPError as e:
            raise RenderProviderError(f"{self.provider.name.capitalize()} API error: {e}") from e
        job.move(RenderState.SUBMITTED)

        status = await self.wait(job)
        logger.info(f"[Render] Render complete: {status.url}")

        content = await self.download(status.url)

        render_id = job.submitted.render_id
        file_name = None
        if render_id and SAFE_RENDER_ID.fullmatch(str(render_id)):
            file_name = f"{render_id}.{request.outputFormat}"
        elif render_id:
            logger.warning(f"[Render] Unsafe render id {render_id!r}, generating a file name")

        file_name, url = await asyncio.to_thread(
            self.storage.save, content, file_name, extension=request.outputFormat
        )

        return RenderResult(videoUrl=url, renderId=render_id, fileName=file_name)

    async def check_template(self, template_url: str) -> None:
        """The template video must be reachable before any provider work starts."""
        logger.info("[Render] Fetching template...")
        try:
            async with self.http.stream("GET", template_url) as response:
                if response.is_error:
                    raise TemplateFetchError(
                        f"Failed to fetch template: {response.reason_phrase or response.status_code}"
                    )
        except httpx.HTTPError as e:
            raise TemplateFetchError(f"Failed to fetch template: {e}") from e

    async def wait(self, job: RenderJob) -> JobStatus:
        """
        SUBMITTED -> PENDING* -> DONE | FAILED, or TIMEOUT once the
        attempt budget is spent.
        """
        while job.attempts < self.max_attempts:
            await self.sleep(self.poll_interval)

            try:
                status = await self.provider.poll(job.submitted)
            except httpx.HTTPError as e:
                job.move(RenderState.FAILED)
                raise RenderProviderError(f"{self.provider.name.capitalize()} API error: {e}") from e
            job.attempts += 1

            if status.state == RenderState.DONE:
                if not status.url:
                    job.move(RenderState.FAILED)
                    raise RenderProviderError(f"{self.provider.name.capitalize()} render finished without a URL")
                job.move(RenderState.DONE)
                return status

            if status.state == RenderState.FAILED:
                job.move(RenderState.FAILED)
                raise RenderProviderError(f"{self.provider.name.capitalize()} render failed")

            job.move(RenderState.PENDING)

        job.move(RenderState.TIMEOUT)
        raise RenderTimeoutError("Render timeout")

    async def download(self, url: str) -> bytes:
        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            raise RenderProviderError(f"Failed to download render: {e}") from e

        if response.is_error:
            raise RenderProviderError(f"Failed to download render: HTTP {response.status_code}")
        return response.content
