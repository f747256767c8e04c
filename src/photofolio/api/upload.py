"""
Brokered upload endpoint.

POST hands the client a signed URL so the browser can put an image straight
into object storage; DELETE removes a list of blobs in one request. The
blocking storage calls run in the threadpool. Errors are returned as
``{"error": message}``.
"""

from fastapi import APIRouter, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..backend import Backend
from ..errors import ConfigurationError, StorageError, ValidationError
from ..logging_config import get_logger
from ..services.image_processor import ALLOWED_CONTENT_TYPES
from ..services.storage import build_object_name

logger = get_logger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])

NOT_CONFIGURED_MESSAGE = "Object storage is not configured. Set GCS_PHOTOS_BUCKET and GOOGLE_CLOUD_PROJECT."


class UploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pathname: str = Field(min_length=1)
    content_type: str = Field(alias="contentType")
    owner: str = "shared"


class DeleteRequest(BaseModel):
    urls: list[str]


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _backend(request: Request) -> Backend:
    return request.app.state.backend


async def _json_body(request: Request) -> object:
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("")
async def create_upload(request: Request) -> JSONResponse:
    try:
        storage = _backend(request).require_storage()
    except ConfigurationError:
        return _error(NOT_CONFIGURED_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        payload = UploadRequest.model_validate(await _json_body(request))
    except PydanticValidationError as exc:
        return _error(f"Invalid upload request: {exc.errors()[0]['msg']}", status.HTTP_400_BAD_REQUEST)

    content_type = payload.content_type.lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        logger.warning("upload_content_type_rejected", pathname=payload.pathname, content_type=content_type)
        return _error(f"Content type '{payload.content_type}' is not allowed", status.HTTP_400_BAD_REQUEST)

    try:
        object_name = build_object_name(payload.owner, payload.pathname)
        handoff = await run_in_threadpool(storage.create_upload_url, object_name, content_type)
    except StorageError as exc:
        return _error(str(exc), status.HTTP_400_BAD_REQUEST)

    logger.info("upload_handoff_created", object_name=handoff["object_name"], content_type=content_type)
    return JSONResponse(
        {
            "uploadUrl": handoff["upload_url"],
            "url": handoff["url"],
            "pathname": handoff["object_name"],
            "contentType": handoff["content_type"],
            "expiresIn": handoff["expires_in"],
        }
    )


@router.delete("")
async def delete_uploads(request: Request) -> JSONResponse:
    try:
        storage = _backend(request).require_storage()
    except ConfigurationError:
        return _error(NOT_CONFIGURED_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        payload = DeleteRequest.model_validate(await _json_body(request))
    except PydanticValidationError:
        return _error("Invalid URL list provided.", status.HTTP_400_BAD_REQUEST)

    try:
        await run_in_threadpool(storage.delete_many, payload.urls, strict=True)
    except ValidationError as exc:
        return _error(str(exc), status.HTTP_400_BAD_REQUEST)
    except StorageError as exc:
        logger.error("upload_delete_failed", count=len(payload.urls), error=str(exc))
        return _error(f"Failed to delete files: {exc}", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse({"success": True})
