"""
后台维护任务

由外部调度（如 cron）触发，不在进程内排队。
"""

from .jobs import sync_missing_grades_job

__all__ = [
    "sync_missing_grades_job",
]
