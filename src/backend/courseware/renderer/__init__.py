"""
题目渲染服务客户端
"""
from .client import RendererClient, RENDERER_ENDPOINT, DEFAULT_PROBLEM_SEED
from .schemas import RendererResponse, clean_for_database, clean_for_response

__all__ = [
    "RendererClient",
    "RENDERER_ENDPOINT",
    "DEFAULT_PROBLEM_SEED",
    "RendererResponse",
    "clean_for_database",
    "clean_for_response",
]
