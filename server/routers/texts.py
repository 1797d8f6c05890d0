"""Text content routes.

GET responses are cached by CacheMiddleware under the request path;
updates and deletes invalidate that same path.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from core.cache import CacheService
from core.container import container
from core.database import Database
from core.logging import get_logger
from models.database import TextCreate, TextUpdate

logger = get_logger(__name__)
router = APIRouter(prefix="/api/cache/text", tags=["texts"])


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "Text not found"})


def _server_error() -> JSONResponse:
    return JSONResponse(status_code=500, content={"message": "Server error"})


@router.post("", status_code=201)
async def create_text(
    request: TextCreate,
    database: Database = Depends(lambda: container.database())
):
    try:
        text = await database.create_text(request.component, request.content)
        return text.model_dump(mode="json")
    except Exception as e:
        logger.error("Error creating text", error=str(e))
        return _server_error()


@router.get("/{text_id}")
async def get_text(
    text_id: int,
    database: Database = Depends(lambda: container.database())
):
    try:
        text = await database.get_text(text_id)
    except Exception as e:
        logger.error("Error fetching text", text_id=text_id, error=str(e))
        return _server_error()

    if text is None:
        return _not_found()
    return text.model_dump(mode="json")


@router.put("/{text_id}")
async def update_text(
    text_id: int,
    payload: TextUpdate,
    request: Request,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    try:
        text = await database.update_text(text_id, payload.model_dump(exclude_unset=True))
    except Exception as e:
        logger.error("Error updating text", text_id=text_id, error=str(e))
        return _server_error()

    if text is None:
        return _not_found()

    await cache.invalidate(request.url.path)
    return text.model_dump(mode="json")


@router.delete("/{text_id}")
async def delete_text(
    text_id: int,
    request: Request,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    try:
        deleted = await database.delete_text(text_id)
    except Exception as e:
        logger.error("Error deleting text", text_id=text_id, error=str(e))
        return _server_error()

    if not deleted:
        return _not_found()

    await cache.invalidate(request.url.path)
    return {"message": "Text deleted"}
