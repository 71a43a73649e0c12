"""
领域异常

- NotFoundError: 操作引用的课程/单元/主题/题目/作答记录不存在
- AlreadyExistsError: 违反唯一约束（课程代码、同一范围内的名称或顺序）
- ValidationFailure: 调用方给出的过滤条件/字段组合有歧义或不足
- WrappedError: 其他持久层或外部服务错误，始终携带原始异常
"""
import re
from typing import Dict, FrozenSet, Iterable, Optional

from sqlalchemy import Table
from sqlalchemy.exc import IntegrityError


class CoursewareError(Exception):
    """领域异常基类"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(CoursewareError):
    """引用的实体不存在"""
    pass


class AlreadyExistsError(CoursewareError):
    """唯一约束冲突"""
    pass


class ValidationFailure(CoursewareError):
    """参数组合无效"""
    pass


class WrappedError(CoursewareError):
    """未识别的底层异常"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# SQLite: "UNIQUE constraint failed: course_unit_content.course_id, course_unit_content.name"
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w\., ]+)")


def violated_unique_columns(error: IntegrityError, table: Table) -> Optional[FrozenSet[str]]:
    """
    解析违反唯一约束的列

    PostgreSQL 通过 diag.constraint_name 给出约束名，再到表定义中查列；
    SQLite 只在错误信息里给出列名。

    Args:
        error: SQLAlchemy 抛出的 IntegrityError
        table: 出错的表

    Returns:
        违反约束的列名集合，无法识别时返回 None
    """
    diag = getattr(error.orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        for item in list(table.indexes) + list(table.constraints):
            if item.name == constraint_name:
                return frozenset(column.name for column in item.columns)
        return None

    match = _SQLITE_UNIQUE_RE.search(str(error.orig))
    if match:
        return frozenset(
            part.strip().split(".")[-1]
            for part in match.group("columns").split(",")
        )
    return None


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    return "foreign key" in str(error.orig).lower()


def translate_integrity_error(
    error: IntegrityError,
    table: Table,
    unique_messages: Dict[Iterable[str], str],
    not_found_message: Optional[str] = None,
    fallback_message: str = "Unknown error occurred",
) -> CoursewareError:
    """
    把持久层的约束冲突翻译成领域异常

    Args:
        error: IntegrityError
        table: 出错的表
        unique_messages: {唯一约束列: 冲突描述}
        not_found_message: 外键冲突时的描述（None 表示不识别外键冲突）
        fallback_message: 无法识别时 WrappedError 的描述

    Returns:
        CoursewareError: 由调用方 raise
    """
    columns = violated_unique_columns(error, table)
    if columns is not None:
        for key, message in unique_messages.items():
            if frozenset(key) == columns:
                return AlreadyExistsError(message)
    elif not_found_message and _is_foreign_key_violation(error):
        return NotFoundError(not_found_message)
    return WrappedError(fallback_message, error)
