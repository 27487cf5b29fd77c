import asyncio
import os
import signal
import sys
import traceback
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config.base import split_csv
from app.core.config.settings import settings
from app.core.database.redis import redis_manager
from app.core.exceptions import AppError
from app.core.logger import logger_manager
from app.middleware.security import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from app.router.v1 import (
    contact_router,
    donation_router,
    expression_router,
    health_router,
    newsletter_router,
    webhook_router,
)


# 创建LoggerManager实例
logger_manager.setup()


# 创建Logger实例
logger = logger_manager.get_logger(__name__)


def _terminate() -> None:
    # 交给外部进程管理器重启
    os.kill(os.getpid(), signal.SIGTERM)


def handle_uncaught_exception(exc_type, exc_value, exc_tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    logger.opt(exception=(exc_type, exc_value, exc_tb)).critical(
        "💥 Uncaught exception, shutting down"
    )
    _terminate()


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    logger.opt(exception=exc).critical(
        f"💥 Unhandled exception in event loop: {context.get('message', exc)}"
    )
    _terminate()


# 创建生命周期
async def lifespan(_app: FastAPI):
    logger.info("🚩 Starting the application...")
    logger.info(f"🚧 You are Working in {settings.app.ENV} Environment")

    if settings.app.is_production:
        missing = settings.missing_production_secrets()
        if missing:
            logger.error(f"❌ Missing required production secrets: {', '.join(missing)}")
            raise RuntimeError(f"Missing required production secrets: {', '.join(missing)}")

    if settings.app.ENV != "test":
        sys.excepthook = handle_uncaught_exception
        asyncio.get_running_loop().set_exception_handler(handle_loop_exception)

    uses_redis = (
        settings.rate_limit.RATE_LIMIT_BACKEND == "redis"
        or settings.stripe.WEBHOOK_EVENT_STORE == "redis"
    )
    if uses_redis:
        try:
            await redis_manager.initialize_async()
            await redis_manager.async_test_connection()
            logger.info("🎉 Redis connection initialized successfully")
        except Exception as e:
            logger.error(f"❌ Redis connection failed: {e}")
            logger.warning("⚠️ Application will start without a verified Redis connection")

    yield

    if uses_redis:
        await redis_manager.close()
    logger.info("👋 Application stopped")


# 创建FastAPI实例
app = FastAPI(
    lifespan=lifespan,
    title=settings.app.APP_NAME,
    version=settings.app.APP_VERSION,
)


# 全局异常处理器
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    headers = None
    if getattr(exc, "retry_after", None):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
        details.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    logger.warning(f"Validation failed on {request.method} {request.url.path}: {details}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation failed", "details": details},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_detail = exc.detail

    if exc.status_code == 404 and error_detail == "Not Found":
        error_message = "Endpoint not found"
    elif isinstance(error_detail, dict):
        # 如果detail是字典，直接使用error字段
        error_message = error_detail.get("error", str(error_detail))
    else:
        error_message = str(error_detail)

    logger.warning(f"HTTPException {exc.status_code} on {request.method} {request.url.path}: {error_message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error_message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}"
    )
    content = {"success": False, "error": "Internal server error"}
    if not settings.app.is_production:
        content["message"] = str(exc)
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


# 中间件 - 最后添加的最先执行
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=split_csv(settings.cors.CORS_ALLOWED_ORIGINS),
    allow_methods=split_csv(settings.cors.CORS_ALLOW_METHODS),
    allow_headers=split_csv(settings.cors.CORS_ALLOW_HEADERS),
    allow_credentials=settings.cors.CORS_ALLOW_CREDENTIALS,
    expose_headers=split_csv(settings.cors.CORS_EXPOSE_HEADERS),
)


# 注册路由
app.include_router(donation_router.router, prefix="/api")
app.include_router(webhook_router.router, prefix="/api")
app.include_router(expression_router.router, prefix="/api")
app.include_router(contact_router.router, prefix="/api")
app.include_router(newsletter_router.router, prefix="/api")
app.include_router(health_router.router, prefix="/api")


@app.get("/", tags=["Health"])
async def index():
    return {
        "message": settings.app.APP_NAME,
        "version": settings.app.APP_VERSION,
        "environment": settings.app.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": {
            "donations": "/api/donations",
            "webhooks": "/api/webhooks",
            "expressions": "/api/expressions-of-interest",
            "contact": "/api/contact",
            "newsletter": "/api/newsletter",
            "health": "/api/health",
        },
    }


# OPEN API 文档
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description=settings.app.APP_DESCRIPTION,
        routes=app.routes,
    )
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


# 启动FastAPI应用
if __name__ == "__main__":
    uvicorn.run(
        app="app.main:app",
        host=settings.app.HOST,
        port=settings.app.PORT,
        reload=settings.app.ENV == "development",
    )
