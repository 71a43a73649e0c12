#!/usr/bin/env python3
"""
成绩补齐脚本
为所有在读学生补建缺失的成绩，可由 cron 定期调用

用法：
    python scripts/sync_missing_grades.py
"""
import sys
import os
import logging
from pathlib import Path

backend_dir = Path(__file__).parent / ".." / "src" / "backend"
sys.path.insert(0, str(backend_dir))
os.chdir(str(backend_dir))

from dotenv import load_dotenv

load_dotenv()

from courseware.tasks import sync_missing_grades_job

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("sync_missing_grades")


def main() -> int:
    try:
        result = sync_missing_grades_job()
    except Exception as e:
        logger.error(f"补齐成绩失败: {e}")
        return 1
    logger.info(f"共补齐 {result['created']} 条成绩")
    return 0


if __name__ == "__main__":
    sys.exit(main())
