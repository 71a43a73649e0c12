"""
配置管理模块

统一管理渲染服务和评分策略的配置。
配置优先级：环境变量 > 默认值
"""

import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass
class RendererConfig:
    """
    题目渲染服务配置

    Attributes:
        url: 渲染服务基础地址
        timeout: 请求超时时间（秒）
    """
    url: str = "http://localhost:3000"
    timeout: float = 30.0


@dataclass
class GradingConfig:
    """
    评分策略配置

    Attributes:
        show_solutions_delay: 截止日期（dead date）之后到开放答案的延迟。
            dead date 之后的提交一律不计分也不记录作答
    """
    show_solutions_delay: timedelta = timedelta(days=7)


def get_renderer_config() -> RendererConfig:
    """
    从环境变量获取渲染服务配置

    环境变量：
        RENDERER_URL: 渲染服务地址
        RENDERER_TIMEOUT: 请求超时时间

    Returns:
        RendererConfig 配置对象
    """
    return RendererConfig(
        url=os.getenv("RENDERER_URL", "http://localhost:3000"),
        timeout=float(os.getenv("RENDERER_TIMEOUT", "30.0")),
    )


def get_grading_config() -> GradingConfig:
    """
    从环境变量获取评分配置

    环境变量：
        SHOW_SOLUTIONS_DELAY_DAYS: dead date 之后的答案开放延迟（天，可为小数）

    Returns:
        GradingConfig 配置对象

    Raises:
        ValueError: 延迟为负数时
    """
    delay_days = float(os.getenv("SHOW_SOLUTIONS_DELAY_DAYS", "7"))
    if delay_days < 0:
        raise ValueError("SHOW_SOLUTIONS_DELAY_DAYS 不能为负数")
    return GradingConfig(show_solutions_delay=timedelta(days=delay_days))
