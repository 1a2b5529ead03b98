"""
FastAPI 应用实例

这是 FastAPI 应用的核心配置文件，负责：
1. 创建 FastAPI 应用实例
2. 配置应用生命周期（开发环境自动建表和向量列）
3. 注册所有 API 路由
4. 配置结构化日志、请求追踪和统一错误响应
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.config import get_settings
from app.db.session import init_models
from app.infra.logging import get_logger, setup_logging
from app.middleware import RequestTraceMiddleware

# 配置结构化日志
setup_logging()
logger = get_logger(__name__)

# 获取全局配置（单例模式，整个应用共享同一个配置实例）
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器

    注意：
        - 开发/测试环境：使用 init_models() 自动创建表、pgvector 扩展和向量列
        - 生产环境：应该使用 Alembic 进行数据库迁移
    """
    logger.info(f"应用启动中... 环境: {settings.environment}")

    if settings.environment in ("dev", "development", "test"):
        await init_models()
        logger.info("数据库表初始化完成（开发模式）")
    else:
        logger.info("跳过自动建表，请使用 Alembic 迁移")

    yield


app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

# 注册中间件（注意顺序：后添加的先执行）
app.add_middleware(RequestTraceMiddleware)

# CORS 配置：允许前端跨域访问
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 开发环境允许所有来源，生产环境应限制
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    """
    统一错误响应格式：
    {
        "error": "<错误信息>"
    }

    保留异常上的响应头（例如限流的 Retry-After）。
    """
    message = exc.detail
    if isinstance(exc.detail, dict):
        message = exc.detail.get("detail") or exc.detail.get("message") or "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    # 请求体无法解析或字段类型错误，细节只记日志，不返回给客户端
    logger.warning(f"请求体校验失败: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(_: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )
