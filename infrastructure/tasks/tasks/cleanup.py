"""Expired shared file cleanup task"""
from __future__ import annotations

import asyncio
from dataclasses import asdict

from celery import shared_task

from ..utils.base_task import BaseTask


async def _run_cleanup() -> dict:
    # 延迟导入：worker 进程只在执行任务时才装配数据库与存储
    from api.dependencies import build_shared_file_service
    from infrastructure.adapters.storage_port import StorageProviderPortAdapter
    from infrastructure.database import dispose_engine
    from infrastructure.external.storage import get_storage_config
    from infrastructure.external.storage.factory import create_provider

    provider = await create_provider(get_storage_config())
    service = build_shared_file_service(StorageProviderPortAdapter(provider))
    try:
        report = await service.cleanup_expired()
    finally:
        # 每次任务都新建 provider 与事件循环，结束时一并释放
        await provider.close()
        await dispose_engine()
    return asdict(report)


@shared_task(
    bind=True,
    base=BaseTask,
    name="shares.cleanup_expired",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": 3},
)
def cleanup_expired_files(self) -> dict:
    """Purge expired shared files: delete stored objects, then tombstone rows."""
    return asyncio.run(_run_cleanup())
