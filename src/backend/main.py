"""
FastAPI应用入口
"""
from dotenv import load_dotenv
from pathlib import Path
import os
import logging

# 加载环境变量 - 优先从根目录加载，回退到当前目录
root_env = Path(__file__).parent.parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)
else:
    load_dotenv()

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from courseware.api import courses, content, questions, statistics
from courseware.core.exceptions import (
    AlreadyExistsError,
    CoursewareError,
    NotFoundError,
    ValidationFailure,
    WrappedError,
)

# 领域异常 -> HTTP 状态码
ERROR_STATUS_CODES = {
    NotFoundError: 404,
    AlreadyExistsError: 409,
    ValidationFailure: 400,
    WrappedError: 500,
}


def _get_cors_config() -> tuple[list[str], str | None]:
    """
    获取 CORS 配置

    Returns:
        (allow_origins, allow_origin_regex)
        - 生产环境：使用 ALLOWED_ORIGINS 中精确匹配的源
        - 开发环境：使用正则匹配本地端口
    """
    origins_str = os.getenv("ALLOWED_ORIGINS", "")
    if origins_str:
        origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]
        if origins:
            return origins, None

    if os.getenv("DEV_MODE", "false").lower() == "true":
        return [], r"http://(localhost|127\.0\.0\.1)(:\d+)?"

    logger.warning("未配置 ALLOWED_ORIGINS 且非开发模式，CORS 将拒绝所有跨域请求")
    return [], None


app = FastAPI(
    title="Courseware API",
    description="Course content, enrollment and grading",
    version="0.1.0"
)

allow_origins, allow_origin_regex = _get_cors_config()
logger.info(f"CORS 配置: origins={allow_origins}, regex={allow_origin_regex}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CoursewareError)
async def courseware_error_handler(request: Request, exc: CoursewareError):
    """把领域异常转换为 HTTP 响应"""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code == 500:
        logger.error(f"{request.method} {request.url.path} 失败: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# 包含所有路由
app.include_router(courses.router, prefix="/api", tags=["课程管理"])
app.include_router(content.router, prefix="/api", tags=["内容管理"])
app.include_router(questions.router, prefix="/api", tags=["题目作答"])
app.include_router(statistics.router, prefix="/api", tags=["成绩统计"])


@app.get("/")
async def root():
    """根路径"""
    return {"message": "Courseware API", "docs": "/docs"}


@app.get("/health")
async def health():
    """健康检查"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
