import logging
from typing import Callable, Literal, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from studio.models.render_model import RenderRequest
from studio.models.template_model import SharedTemplateData
from studio.routes.template import get_store, require_id
from studio.services.render_helper import build_render_request
from studio.services.render_orchestrator import RenderOrchestrator
from studio.services.template_store import TemplateStore
from studio.utils.errors import RenderConfigurationError, StudioError, TemplateNotFound

router = APIRouter(prefix="/render", tags=["Render"])
logger = logging.getLogger(__name__)

NOT_CONFIGURED = {
    "error": "Video processing API not configured",
    "message": "Please configure SHOTSTACK_API_KEY or CREATOMATE_API_KEY secret",
    "documentation": {
        "shotstack": "https://shotstack.io/docs",
        "creatomate": "https://creatomate.com/docs",
    },
}


class SharedRenderOptions(BaseModel):
    templateUrl: Optional[str] = None
    outputFormat: Literal["mp4", "webm"] = "mp4"
    quality: Literal["low", "medium", "high"] = "medium"


def get_orchestrator_factory(request: Request) -> Callable[[], RenderOrchestrator]:
    app = request.app

    def factory() -> RenderOrchestrator:
        return RenderOrchestrator.from_settings(app.state.settings, app.state.http, app.state.storage)

    return factory


def failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message})


async def run_render(render_request: RenderRequest, factory: Callable[[], RenderOrchestrator]):
    try:
        orchestrator = factory()
    except RenderConfigurationError as e:
        logger.error(f"[Render] {e}")
        return JSONResponse(status_code=500, content=NOT_CONFIGURED)

    try:
        result = await orchestrator.render(render_request)
    except StudioError as e:
        # provider failure, timeout, upload failure, config: same envelope
        logger.error(f"[Render] Error: {e}")
        return failure(str(e))

    return result.model_dump(exclude_none=True)


@router.post("")
async def render_video(
    render_request: RenderRequest,
    factory: Callable[[], RenderOrchestrator] = Depends(get_orchestrator_factory),
):
    return await run_render(render_request, factory)


@router.post("/shared")
async def render_shared_template(
    id: Optional[str] = None,
    options: Optional[SharedRenderOptions] = None,
    store: TemplateStore = Depends(get_store),
    factory: Callable[[], RenderOrchestrator] = Depends(get_orchestrator_factory),
):
    """Render a stored template: its iterations become back-to-back overlays."""
    template_id = require_id(id)
    options = options or SharedRenderOptions()

    try:
        record = await store.get(template_id)
    except TemplateNotFound:
        return JSONResponse(status_code=404, content={"error": "Template not found"})

    try:
        template = SharedTemplateData.model_validate(record["template_data"])
        render_request = build_render_request(
            template,
            template_url=options.templateUrl,
            output_format=options.outputFormat,
            quality=options.quality,
        )
    except (ValidationError, ValueError) as e:
        logger.error(f"[Render] Cannot render template {template_id}: {e}")
        return JSONResponse(status_code=400, content={"error": "Template cannot be rendered"})

    return await run_render(render_request, factory)
