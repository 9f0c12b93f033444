"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import files as files_routes
from api.routes import share as share_routes
from api.dependencies import build_shared_file_service
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.services.expiry_sweeper import ExpirySweeper
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from infrastructure.adapters.storage_port import StorageProviderPortAdapter
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.storage import (
    init_storage_client,
    shutdown_storage_client,
    get_storage_config,
)


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    # 初始化存储服务（local / s3 二选一，启动时确定）
    storage = await init_storage_client()
    config = get_storage_config()
    logger.info(
        "storage_initialized",
        message="Storage service initialized",
        provider=config.type,
        bucket=config.bucket,
    )

    # 过期清理：启动时立即执行一次，之后按间隔执行
    sweeper = None
    if settings.share.cleanup_enabled:
        port = StorageProviderPortAdapter(storage)
        sweeper = ExpirySweeper(
            lambda: build_shared_file_service(port),
            interval=settings.share.cleanup_interval_seconds,
        )
        sweeper.start()
        app.state.expiry_sweeper = sweeper

    yield

    # 关闭时的清理工作
    if sweeper is not None:
        await sweeper.aclose()
    await shutdown_storage_client()
    logger.info("storage_shutdown", message="Storage service shutdown")
    await dispose_engine()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="文件分享服务：上传文件，生成短链接，按需设置过期时间与访问密码",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(files_routes.router, prefix="/api/v1")
app.include_router(share_routes.router)


# 根路径
@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message="Welcome"
    )


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message="OK")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
