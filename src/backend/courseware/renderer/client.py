"""
渲染服务客户端

给定题目路径、随机种子和表单状态，返回渲染后的题目和评分信息。
- 404 -> NotFoundError（题目路径不存在）
- 其他失败 -> WrappedError
单次调用，不重试，重试策略由调用方决定。
"""
from typing import Any, Dict, Optional
import httpx
import logging

from pydantic import ValidationError

from courseware.core.config import get_renderer_config
from courseware.core.exceptions import NotFoundError, WrappedError
from courseware.core.roles import OutputFormat
from .schemas import RendererResponse

logger = logging.getLogger(__name__)

RENDERER_ENDPOINT = "/rendered"

# 没有成绩记录（如教师预览）时使用的固定种子
DEFAULT_PROBLEM_SEED = 666

_ERROR_PREFIX = "Get problem from renderer error"


class RendererClient:
    """渲染服务客户端"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Args:
            base_url: 渲染服务地址（默认读取 RENDERER_URL）
            timeout: 请求超时时间（秒）
            transport: 自定义 httpx transport（测试时注入）
        """
        config = get_renderer_config()
        self.base_url = (base_url or config.url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.timeout
        self.transport = transport

    @staticmethod
    def build_form(
        form_data: Optional[Dict[str, Any]],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        合并表单：先放调用方的表单数据，再用显式参数覆盖，丢弃空值

        列表值在编码时会展开成同名的多个字段。
        """
        merged = {key: value for key, value in (form_data or {}).items() if value is not None}
        merged.update({key: value for key, value in params.items() if value is not None})
        return merged

    def get_problem(
        self,
        source_file_path: str,
        problem_seed: Optional[int],
        form_url: str,
        form_data: Optional[Dict[str, Any]] = None,
        output_format: Optional[OutputFormat] = None,
        permission_level: Optional[int] = None,
        show_solutions: bool = False,
        show_correct_answers: bool = False,
        show_hints: Optional[bool] = None,
        problem_number: Optional[int] = None,
        num_correct: Optional[int] = None,
        num_incorrect: Optional[int] = None,
        process_answers: Optional[bool] = None,
        base_url: str = "/",
        response_format: str = "json"
    ) -> Dict[str, Any]:
        """
        请求渲染一道题

        Args:
            source_file_path: 题目路径
            problem_seed: 随机种子
            form_url: 表单提交地址
            form_data: 学生提交的表单数据（可选）
            output_format: 输出格式
            permission_level: 渲染权限等级
            show_solutions: 是否显示解答
            show_correct_answers: 是否显示正确答案
            num_incorrect: 错误次数

        Returns:
            dict: 渲染服务返回的 JSON

        Raises:
            NotFoundError: 题目路径不存在
            WrappedError: 其他请求失败
        """
        params = {
            "sourceFilePath": source_file_path,
            "problemSeed": problem_seed,
            "formURL": form_url,
            "baseURL": base_url,
            "outputformat": output_format.value if isinstance(output_format, OutputFormat) else output_format,
            "format": response_format,
            "showHints": None if show_hints is None else int(show_hints),
            "showSolutions": int(bool(show_solutions)),
            "permissionLevel": permission_level,
            "problemNumber": problem_number,
            "numCorrect": num_correct,
            "numIncorrect": num_incorrect,
            "processAnswers": process_answers,
            "showCorrectAnswers": "true" if show_correct_answers else None,
        }
        payload = self.build_form(form_data, params)

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.post(RENDERER_ENDPOINT, data=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.error(f"渲染服务找不到题目路径 {source_file_path}")
                raise NotFoundError("Problem path not found") from e
            raise WrappedError(f"{_ERROR_PREFIX}; response: {e.response.text[:500]}", e) from e
        except httpx.HTTPError as e:
            raise WrappedError(_ERROR_PREFIX, e) from e
        except ValueError as e:
            # 响应不是合法 JSON
            raise WrappedError(f"{_ERROR_PREFIX}; invalid JSON", e) from e

    def render(self, **kwargs) -> RendererResponse:
        """
        渲染并校验响应结构

        Raises:
            WrappedError: 响应结构不符合预期
        """
        raw = self.get_problem(**kwargs)
        try:
            return RendererResponse.model_validate(raw)
        except ValidationError as e:
            raise WrappedError("Renderer response failed validation", e) from e
