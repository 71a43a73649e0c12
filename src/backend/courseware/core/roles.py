"""
角色与渲染权限
"""
from enum import Enum


class Role(str, Enum):
    """用户角色枚举"""
    STUDENT = "student"
    PROFESSOR = "professor"
    ADMIN = "admin"


class OutputFormat(str, Enum):
    """渲染服务输出格式"""
    SINGLE = "single"
    SIMPLE = "simple"
    STATIC = "static"
    ASSESS = "nosubmit"


# 角色 -> 渲染权限等级
PERMISSION_LEVELS = {
    Role.STUDENT: 0,
    Role.PROFESSOR: 10,
    Role.ADMIN: 20,
}


def get_permission_for_role(role) -> int:
    """未知角色返回 -1"""
    try:
        return PERMISSION_LEVELS.get(Role(role), -1)
    except ValueError:
        return -1


def get_output_format_for_permission(permission_level: int) -> OutputFormat:
    """权限低于 10（学生）只渲染单题表单"""
    if permission_level < 10:
        return OutputFormat.SINGLE
    return OutputFormat.SIMPLE


def get_output_format_for_role(role) -> OutputFormat:
    return get_output_format_for_permission(get_permission_for_role(role))


def shows_solutions(role) -> bool:
    """教师和管理员渲染时显示答案"""
    return get_permission_for_role(role) >= 10
