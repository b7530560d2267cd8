import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from studio.services.template_store import TemplateStore
from studio.utils.errors import TemplateNotFound

router = APIRouter(prefix="/templates", tags=["Templates"])
logger = logging.getLogger(__name__)


def get_store(request: Request) -> TemplateStore:
    return request.app.state.template_store


def require_id(id: Optional[str]) -> str:
    # GET / PUT / DELETE are only routed when an id is given
    if not id:
        raise HTTPException(405, "Method not allowed")
    return id


def template_data_of(data: dict, failure: str) -> dict:
    template_data = data.get("template_data") if isinstance(data, dict) else None
    if not isinstance(template_data, dict):
        logger.error("[Templates API] Missing template_data in body")
        raise HTTPException(500, failure)
    return template_data


@router.get("")
async def get_template(id: Optional[str] = None, store: TemplateStore = Depends(get_store)):
    template_id = require_id(id)
    logger.info(f"[Templates API] GET request id={template_id}")

    try:
        record = await store.get(template_id)
    except TemplateNotFound:
        raise HTTPException(404, "Template not found")

    logger.info("[Templates API] Template fetched successfully")
    return record


@router.post("")
async def create_template(data: dict = Body(...), store: TemplateStore = Depends(get_store)):
    template_data = template_data_of(data, "Failed to create template")

    logger.info(
        "[Templates API] Creating template: "
        f"background={bool(template_data.get('backgroundImage') or template_data.get('backgroundVideo'))} "
        f"placeholders={len(template_data.get('placeholders') or [])} "
        f"iterations={len(template_data.get('iterations') or [])}"
    )

    try:
        record = await store.create(template_data)
    except Exception as e:
        logger.error(f"[Templates API] Create error: {e}")
        raise HTTPException(500, "Failed to create template")

    logger.info(f"[Templates API] Template created successfully: {record['id']}")
    return JSONResponse(status_code=201, content=record)


@router.put("")
async def update_template(
    id: Optional[str] = None,
    data: dict = Body(...),
    store: TemplateStore = Depends(get_store),
):
    template_id = require_id(id)
    template_data = template_data_of(data, "Failed to update template")
    logger.info(f"[Templates API] Updating template: {template_id}")

    try:
        record = await store.replace(template_id, template_data)
    except TemplateNotFound:
        raise HTTPException(404, "Template not found")
    except Exception as e:
        logger.error(f"[Templates API] Update error: {e}")
        raise HTTPException(500, "Failed to update template")

    logger.info("[Templates API] Template updated successfully")
    return record


@router.delete("")
async def delete_template(id: Optional[str] = None, store: TemplateStore = Depends(get_store)):
    template_id = require_id(id)
    logger.info(f"[Templates API] Deleting template: {template_id}")

    try:
        await store.delete(template_id)
    except Exception as e:
        logger.error(f"[Templates API] Delete error: {e}")
        raise HTTPException(500, "Failed to delete template")

    logger.info("[Templates API] Template deleted successfully")
    return {"success": True}
