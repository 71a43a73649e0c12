"""
维护任务函数

- 成绩补齐：全量扫描在读学生缺失的成绩并补建
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from courseware.core.clock import utcnow
from courseware.core.database import SessionLocal
from courseware.services.enrollment_service import EnrollmentService

logger = logging.getLogger(__name__)


def sync_missing_grades_job(session_factory: Optional[sessionmaker] = None) -> Dict[str, Any]:
    """
    补齐缺失的成绩

    使用独立的数据库会话，单条失败不会中断整个任务。

    Args:
        session_factory: 会话工厂（默认 SessionLocal）

    Returns:
        包含补齐数量的字典
    """
    session_factory = session_factory or SessionLocal
    started_at = utcnow()
    logger.info("开始补齐缺失的成绩")

    db = session_factory()
    try:
        created = EnrollmentService.sync_missing_grades(db)
    except Exception as e:
        logger.error(f"补齐成绩任务失败: {str(e)}")
        raise
    finally:
        db.close()

    result = {
        "success": True,
        "created": created,
        "started_at": started_at.isoformat(),
        "finished_at": utcnow().isoformat(),
    }
    logger.info(f"补齐成绩任务完成: created={created}")
    return result
