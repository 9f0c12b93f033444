"""分享文件管理路由（上传、查询、修改、删除）。"""
from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi import Response as HTTPResponse

from api.dependencies import get_access_resolver, get_shared_file_service
from api.utils.streaming import download_response
from application.dto import SharedFileDTO, SharedFileListDTO, UpdateSharedFileDTO
from application.services.access_resolver import AccessResolver
from application.services.shared_file_service import SharedFileApplicationService
from core.config import settings
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/files",
    tags=["文件管理"],
)


async def _read_chunks(upload: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        yield chunk


@router.post(
    "",
    summary="上传文件并生成分享链接",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SharedFileDTO],
)
async def upload_file(
    file: UploadFile = File(..., description="要分享的文件"),
    expires_at: Optional[datetime] = Form(None, description="过期时间（RFC3339）"),
    password: Optional[str] = Form(None, description="访问密码"),
    slug: Optional[str] = Form(None, description="自定义链接标识"),
    service: SharedFileApplicationService = Depends(get_shared_file_service),
):
    try:
        dto = await service.upload(
            _read_chunks(file, settings.share.download_chunk_size),
            file.filename or "",
            content_type=file.content_type,
            expires_at=expires_at,
            password=password or None,
            slug=slug or None,
            size_hint=file.size,
        )
    finally:
        await file.close()
    return success_response(dto, message="Created")


@router.get(
    "",
    summary="分享文件列表（未过期）",
    response_model=ApiResponse[SharedFileListDTO],
)
async def list_files(
    service: SharedFileApplicationService = Depends(get_shared_file_service),
):
    items = await service.list_files()
    return success_response(SharedFileListDTO(items=items, total=len(items)), message="OK")


@router.get(
    "/{file_id}",
    summary="分享文件详情",
    response_model=ApiResponse[SharedFileDTO],
)
async def get_file(
    file_id: int,
    service: SharedFileApplicationService = Depends(get_shared_file_service),
):
    return success_response(await service.get(file_id), message="OK")


@router.patch(
    "/{file_id}",
    summary="修改过期时间、密码或链接标识",
    response_model=ApiResponse[SharedFileDTO],
)
async def update_file(
    file_id: int,
    payload: UpdateSharedFileDTO,
    service: SharedFileApplicationService = Depends(get_shared_file_service),
):
    return success_response(await service.update(file_id, payload), message="Updated")


@router.delete(
    "/{file_id}",
    summary="删除分享文件",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=HTTPResponse,
)
async def delete_file(
    file_id: int,
    service: SharedFileApplicationService = Depends(get_shared_file_service),
):
    await service.delete(file_id)
    return HTTPResponse(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{file_id}/download",
    summary="按ID下载文件",
)
async def download_file(
    file_id: int,
    password: Optional[str] = Query(None, description="访问密码"),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    resolved = await resolver.resolve_by_id(file_id, password)
    return download_response(resolved, mode="attachment")
