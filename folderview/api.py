"""
API routes for folderview
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .delivery import RangeNotSatisfiable
from .errors import FileServiceError, status_for_kind
from .models import DeliveryMode, UploadResult
from .service import FolderService
from .utils import parse_http_range

logger = logging.getLogger(__name__)

# API router
api_router = APIRouter(prefix="/api", tags=["api"])


def get_folder_service(request: Request) -> FolderService:
    """Folder service built for this application at startup"""
    return request.app.state.folder_service


@api_router.get("/tree")
async def get_tree(
    path: Optional[str] = None,
    service: FolderService = Depends(get_folder_service),
):
    """List the folder roots, or the children of one directory"""

    entries = await service.list_tree(path)
    return [entry.to_dict() for entry in entries]


@api_router.get("/file")
async def get_file_view(
    path: Optional[str] = None,
    service: FolderService = Depends(get_folder_service),
):
    """Classify a file and return its viewer payload"""

    view = await service.view(path)
    return view.to_dict()


@api_router.get("/raw")
async def get_raw_file(
    request: Request,
    path: Optional[str] = None,
    service: FolderService = Depends(get_folder_service),
):
    """Stream file bytes inline"""

    return await _deliver(request, service, path, DeliveryMode.RAW)


@api_router.get("/download")
async def download_file(
    request: Request,
    path: Optional[str] = None,
    service: FolderService = Depends(get_folder_service),
):
    """Stream file bytes as an attachment"""

    return await _deliver(request, service, path, DeliveryMode.ATTACHMENT)


@api_router.post("/upload")
async def upload_files(
    request: Request,
    folder: Optional[str] = None,
    relativePath: Optional[str] = None,
    service: FolderService = Depends(get_folder_service),
):
    """Stream multipart ``files`` parts into a folder"""

    try:
        result = await service.upload(
            folder,
            request.headers.get("content-type"),
            request.stream(),
            relativePath,
        )
    except FileServiceError as e:
        result = UploadResult(success=False, error=e.message, kind=e.kind)

    request.app.state.metrics.record_upload(result)

    status_code = 200 if result.success else status_for_kind(result.kind)
    return JSONResponse(content=result.to_dict(), status_code=status_code)


async def _deliver(
    request: Request,
    service: FolderService,
    path: Optional[str],
    mode: DeliveryMode,
) -> StreamingResponse:
    range_header = request.headers.get("Range")
    http_range = parse_http_range(range_header) if range_header else None

    delivery = await service.deliver(path, mode, http_range)
    metrics = request.app.state.metrics

    # Wrap generator to count bytes
    async def counted_generator():
        async for chunk in delivery.body:
            metrics.add_download_bytes(len(chunk))
            yield chunk

    return StreamingResponse(
        counted_generator(),
        status_code=delivery.status_code,
        headers=delivery.headers,
        media_type=delivery.media_type,
    )


async def file_service_error_handler(request: Request, exc: FileServiceError) -> JSONResponse:
    """Render service errors as ``{"error", "kind"}`` bodies"""

    headers = None
    if isinstance(exc, RangeNotSatisfiable):
        headers = {"Content-Range": f"bytes */{exc.total_size}"}

    request.app.state.metrics.record_error(exc.kind)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


def setup_api_routes(app):
    """Setup API routes"""
    app.include_router(api_router)
    app.add_exception_handler(FileServiceError, file_service_error_handler)
    logger.info("API routes setup complete")
