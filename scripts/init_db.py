#!/usr/bin/env python3
"""
数据库初始化脚本
创建课程、内容、成绩等全部表

用法：
    python scripts/init_db.py           # 创建缺失的表
    python scripts/init_db.py --reset   # 删除后重建（仅开发环境）
"""
import argparse
import sys
import os
from pathlib import Path

backend_dir = Path(__file__).parent / ".." / "src" / "backend"
sys.path.insert(0, str(backend_dir))

# 默认 SQLite 路径相对于 backend 目录
os.chdir(str(backend_dir))
Path("data").mkdir(exist_ok=True)

from courseware.models import drop_all, init_db


def main():
    parser = argparse.ArgumentParser(description="初始化课程数据库")
    parser.add_argument("--reset", action="store_true", help="先删除所有表再重建")
    args = parser.parse_args()

    if args.reset:
        drop_all()
    init_db()


if __name__ == "__main__":
    main()
