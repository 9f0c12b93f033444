"""公开分享路由：分享页跳转与按链接下载。"""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import RedirectResponse

from api.dependencies import get_access_resolver
from api.utils.streaming import download_response
from application.services.access_resolver import AccessResolver

router = APIRouter(tags=["公开分享"])


def _download_path(identifier: str, password: Optional[str] = None) -> str:
    path = f"/d/{quote(identifier, safe='')}"
    if password:
        path = f"{path}?{urlencode({'password': password})}"
    return path


@router.get("/s/{slug}", summary="分享页：校验后跳转到下载地址")
async def share_page(
    slug: str,
    password: Optional[str] = Query(None, description="访问密码"),
    share_password: Optional[str] = Header(None, alias="X-Share-Password"),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    supplied = password or share_password
    shared_file = await resolver.verify_access(slug, supplied)
    return RedirectResponse(
        _download_path(shared_file.slug, supplied if shared_file.has_password() else None),
        status_code=302,
    )


@router.get("/d/{identifier}", summary="按链接标识或文件名下载", name="download_shared_file")
async def download_shared_file(
    identifier: str,
    password: Optional[str] = Query(None, description="访问密码"),
    share_password: Optional[str] = Header(None, alias="X-Share-Password"),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    resolved = await resolver.resolve(identifier, password or share_password)
    return download_response(resolved, mode="inline")
