"""
时间工具
数据库统一存储不带时区的 UTC 时间
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """获取当前 UTC 时间（naive）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间转换为 naive UTC；不带时区的视为 UTC 原样返回"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
