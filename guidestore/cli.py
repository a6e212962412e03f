#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
guidestore 维护命令行

用法:
    python -m guidestore.cli info
    python -m guidestore.cli backup [--output PATH]
    python -m guidestore.cli backups
    python -m guidestore.cli restore PATH
    python -m guidestore.cli checkpoint
    python -m guidestore.cli stats --user USER_ID
    python -m guidestore.cli categories
"""

import os
import argparse
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from tabulate import tabulate

from guidestore.config import create_data_layer, load_settings
from guidestore.exceptions import GuideStoreError
from guidestore.services.backup_service import BackupService
from guidestore.storage.database.data_layer import GuideDataLayer
from guidestore.utils.config import get_config
from guidestore.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """解析命令行参数"""
    parser = argparse.ArgumentParser(description="guidestore 数据库维护工具")
    parser.add_argument("--config", help="配置文件或配置目录路径")
    parser.add_argument("--db", help="数据库文件路径，覆盖配置")
    parser.add_argument("--debug", action="store_true", help="调试模式")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("info", help="显示各集合的文档数量和文件大小")

    backup_parser = subparsers.add_parser("backup", help="创建备份包（zip）")
    backup_parser.add_argument("--output", help="备份包路径，默认放在备份目录下")

    subparsers.add_parser("backups", help="列出备份目录中的有效备份包")

    restore_parser = subparsers.add_parser("restore", help="从备份包恢复数据库")
    restore_parser.add_argument("path", help="备份包路径")

    subparsers.add_parser("checkpoint", help="把 WAL 写回主文件")

    stats_parser = subparsers.add_parser("stats", help="显示用户的进度统计")
    stats_parser.add_argument("--user", required=True, help="用户 ID")

    subparsers.add_parser("categories", help="列出指南实际使用的分类")

    return parser.parse_args(argv)


def cmd_info(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    counts = data_layer.get_collection_counts()
    rows = [[name, count] for name, count in counts.items()]
    print(f"数据库: {data_layer.db_path}")
    print(f"文件大小: {data_layer.get_file_size() / 1024:.1f} KB")
    print(tabulate(rows, headers=["集合", "文档数"], tablefmt="simple"))
    return 0


def cmd_backup(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    path = args.output or os.path.join(
        args.backup_dir, f"guidestore_backup_{datetime.now():%Y%m%d_%H%M%S}.zip"
    )
    if not BackupService(data_layer).create_backup(path):
        return 1
    print(f"备份完成: {path}")
    return 0


def cmd_backups(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    service = BackupService(data_layer)
    rows = []
    for path in service.get_available_backups(args.backup_dir):
        info = service.get_backup_info(path)
        rows.append([os.path.basename(path), info.summary() if info else "-"])

    if not rows:
        print(f"没有备份: {args.backup_dir}")
        return 0
    print(tabulate(rows, headers=["文件", "内容"], tablefmt="simple"))
    return 0


def cmd_restore(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    if not BackupService(data_layer).restore_backup(args.path):
        return 1
    print(f"已从备份恢复: {args.path}")
    return 0


def cmd_checkpoint(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    # checkpoint 对从未打开的句柄无效，这里先打开
    data_layer.db_manager.open()
    data_layer.checkpoint()
    print("checkpoint 完成")
    return 0


def cmd_stats(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    statistics = data_layer.progress.get_statistics(args.user)
    rows = [
        ["已开始", statistics.total_started],
        ["已完成", statistics.total_completed],
        ["进行中", statistics.currently_in_progress],
        ["平均完成时间(分钟)", statistics.average_completion_time_minutes],
        ["完成率(%)", statistics.completion_rate],
    ]
    print(tabulate(rows, headers=["指标", "值"], tablefmt="simple"))
    return 0


def cmd_categories(data_layer: GuideDataLayer, args: argparse.Namespace) -> int:
    guides = data_layer.guides
    rows = [[name, guides.get_category_count(name)] for name in guides.get_distinct_categories()]
    if not rows:
        print("没有指南")
        return 0
    print(tabulate(rows, headers=["分类", "指南数"], tablefmt="simple"))
    return 0


COMMANDS = {
    'info': cmd_info,
    'backup': cmd_backup,
    'backups': cmd_backups,
    'restore': cmd_restore,
    'checkpoint': cmd_checkpoint,
    'stats': cmd_stats,
    'categories': cmd_categories,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    命令行入口

    Returns:
        0: 成功
        1: 失败
    """
    args = parse_args(argv)

    config: Dict[str, Any] = get_config(config_path=args.config)
    setup_logging(config.get('logging'), debug=args.debug)

    settings = load_settings(config)
    if args.db:
        settings.db_path = args.db
    args.backup_dir = settings.resolved_backup_dir

    try:
        with create_data_layer(settings) as data_layer:
            return COMMANDS[args.command](data_layer, args)
    except GuideStoreError as e:
        logger.error(f"执行 {args.command} 失败: {e}")
        return 1
    except OSError as e:
        logger.error(f"文件操作失败: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
