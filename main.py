"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import refunds
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.middleware.locale import LocaleMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.i18n import t
from core.logging_config import get_logger
from infrastructure.database import create_tables
from infrastructure.external.payments import get_payment_gateway
from infrastructure.notifications import CeleryNotificationSink
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
# 注册 Celery 任务（eager 模式下 API 进程内直接执行）
import infrastructure.tasks.tasks  # noqa: F401


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：装配网关、通知与 UoW 工厂"""
    # 启动时创建数据库表（仅开发环境 / SQLite）。生产应使用 Alembic 迁移
    if settings.DEBUG or settings.database.url.startswith("sqlite"):
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    gateway = get_payment_gateway()
    app.state.payment_gateway = gateway
    app.state.notification_sink = CeleryNotificationSink()
    app.state.uow_factory = SQLAlchemyUnitOfWork
    logger.info("payment_gateway_initialized", provider=gateway.provider)

    yield

    # 关闭时的清理工作
    try:
        await gateway.aclose()
    except Exception as exc:
        logger.warning("payment_gateway_close_failed", error=str(exc))
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="电商平台退款服务：退款申请、网关执行、取消与对账",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 2.5 语言中间件（解析 locale）
app.add_middleware(LocaleMiddleware)

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
app.include_router(refunds.router, prefix="/api/v1")


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message=t("Service is healthy"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
