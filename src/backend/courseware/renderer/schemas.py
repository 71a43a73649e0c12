"""
渲染服务响应结构

题目源码可能改动答案对象，个别字段会缺失，所以答案字段都是可选的；
数字形式的字符串字段统一转成字符串。
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnswerEntry(BaseModel):
    """单个答案框的评分结果"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    filter_name: Optional[str] = Field(None, alias="_filter_name")
    correct_ans: Any = None
    original_student_ans: Optional[str] = None
    preview_latex_string: Optional[str] = None
    score: Optional[float] = Field(None, ge=0, le=1)
    student_ans: Optional[str] = None
    correct_ans_latex_string: Optional[str] = None
    entry_type: Optional[str] = None

    @field_validator(
        "filter_name",
        "original_student_ans",
        "preview_latex_string",
        "student_ans",
        "correct_ans_latex_string",
        "entry_type",
        mode="before",
    )
    @classmethod
    def _to_string(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class DebugInfo(BaseModel):
    """渲染调试信息"""
    model_config = ConfigDict(extra="allow")

    debug: List[str]
    internal: List[str]
    perl_warn: str
    pg_warn: List[str]
    render_warn: Optional[List[str]] = None


class ProblemFlags(BaseModel):
    """题目标志"""
    model_config = ConfigDict(extra="allow")

    ANSWER_ENTRY_ORDER: List[str]
    KEPT_EXTRA_ANSWERS: List[str]
    showHintLimit: float
    showPartialCorrectAnswers: Optional[float] = Field(None, ge=0, le=1)
    solutionExists: float = Field(..., ge=0, le=1)
    hintExists: float = Field(..., ge=0, le=1)


class ProblemResult(BaseModel):
    """整题评分结果"""
    model_config = ConfigDict(extra="allow")

    errors: str
    msg: str
    score: float = Field(..., ge=0, le=1)
    type: str


class RendererResponse(BaseModel):
    """渲染服务响应"""
    model_config = ConfigDict(extra="allow")

    answers: Dict[str, AnswerEntry]
    debug: Optional[DebugInfo] = None
    flags: ProblemFlags
    form_data: Any
    problem_result: ProblemResult
    renderedHTML: str


def clean_for_database(response: RendererResponse) -> Dict[str, Any]:
    """入库只保留表单数据和调试信息"""
    cleaned: Dict[str, Any] = {"form_data": response.form_data}
    if response.debug is not None:
        cleaned["debug"] = response.debug.model_dump()
    return cleaned


def clean_for_response(response: RendererResponse) -> Dict[str, Any]:
    """返回给前端只需要渲染后的 HTML"""
    return {"renderedHTML": response.renderedHTML}
