"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Optional, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.repositories.shared_file_repository import (
    SQLAlchemySharedFileRepository,
)


def _default_session_factory() -> AsyncSession:
    # 延迟导入，避免仅使用仓储的场景提前创建全局引擎
    from infrastructure.database import AsyncSessionLocal

    return AsyncSessionLocal()


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work

    - 写模式：进入时开启事务，正常退出自动提交，异常退出回滚
    - 只读模式：不开启显式事务，也从不提交
    - 传入外部 session 时只管理事务，不负责关闭 session
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = _default_session_factory,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self.shared_file_repository = SQLAlchemySharedFileRepository(self.session)
        if not self._readonly and not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None
            self.shared_file_repository = None  # type: ignore[assignment]

    async def commit(self) -> None:
        if not self._readonly and self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
