#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
备份包服务

备份包是一个 zip，包含:
- data.db: 数据库文件（DatabaseManager.backup 生成）
- metadata.json: BackupInfo（camelCase 键）

所有操作失败时记录日志并返回 False / None / 空列表，不向上抛异常。
"""

import os
import json
import shutil
import sqlite3
import logging
import tempfile
import zipfile
from datetime import datetime
from importlib import metadata as importlib_metadata
from typing import List, Optional

from pydantic import ValidationError

from guidestore.exceptions import GuideStoreError
from guidestore.models.export import BackupInfo
from guidestore.storage.database.data_layer import GuideDataLayer

logger = logging.getLogger(__name__)

DATABASE_ENTRY = 'data.db'
METADATA_ENTRY = 'metadata.json'


def get_app_version() -> str:
    """已安装的 guidestore 版本，未安装时返回 0.0.0"""
    try:
        return importlib_metadata.version('guidestore')
    except importlib_metadata.PackageNotFoundError:
        return '0.0.0'


class BackupService:
    """数据库备份与恢复"""

    def __init__(self, data_layer: GuideDataLayer):
        if data_layer is None:
            raise ValueError("data_layer 不能为空")
        self.data_layer = data_layer

    def _create_metadata(self, database_path: str) -> BackupInfo:
        counts = self.data_layer.get_collection_counts()
        return BackupInfo(
            app_version=get_app_version(),
            guide_count=counts['guides'],
            user_count=counts['users'],
            progress_count=counts['progress'],
            category_count=counts['categories'],
            database_size=os.path.getsize(database_path),
            is_valid=True,
        )

    def create_backup(self, backup_path: str) -> bool:
        """
        创建备份包

        Args:
            backup_path: zip 文件路径，已存在时覆盖

        Returns:
            是否成功
        """
        logger.info(f"开始创建备份: {backup_path}")

        try:
            with tempfile.TemporaryDirectory(prefix='guidestore_backup_') as temp_dir:
                temp_db_path = os.path.join(temp_dir, DATABASE_ENTRY)
                self.data_layer.backup(temp_db_path)

                metadata = self._create_metadata(temp_db_path)

                backup_dir = os.path.dirname(os.path.abspath(backup_path))
                os.makedirs(backup_dir, exist_ok=True)

                with zipfile.ZipFile(backup_path, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
                    archive.write(temp_db_path, DATABASE_ENTRY)
                    archive.writestr(METADATA_ENTRY, metadata.to_json())

            logger.info(f"备份创建成功: {backup_path} ({os.path.getsize(backup_path)} bytes)")
            return True
        except (OSError, zipfile.BadZipFile, sqlite3.Error, GuideStoreError) as e:
            logger.error(f"创建备份失败: {backup_path}: {e}")
            return False

    def validate_backup(self, backup_path: str) -> bool:
        """备份包存在、是合法 zip，且同时包含 data.db 和 metadata.json"""
        if not os.path.isfile(backup_path):
            return False

        try:
            with zipfile.ZipFile(backup_path, 'r') as archive:
                names = {os.path.basename(name) for name in archive.namelist()}
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"校验备份失败: {backup_path}: {e}")
            return False

        return DATABASE_ENTRY in names and METADATA_ENTRY in names

    def get_backup_info(self, backup_path: str) -> Optional[BackupInfo]:
        """
        读取备份包的元数据

        Returns:
            BackupInfo（is_valid 按当前校验结果重新设置），读取失败返回 None
        """
        if not os.path.isfile(backup_path):
            return None

        try:
            with zipfile.ZipFile(backup_path, 'r') as archive:
                entry = next(
                    (n for n in archive.namelist() if os.path.basename(n) == METADATA_ENTRY),
                    None
                )
                if entry is None:
                    return None
                info = BackupInfo.model_validate(json.loads(archive.read(entry)))
        except (OSError, zipfile.BadZipFile, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"读取备份信息失败: {backup_path}: {e}")
            return None

        info.is_valid = self.validate_backup(backup_path)
        return info

    def get_available_backups(self, directory: str) -> List[str]:
        """
        目录下所有有效的备份包

        Returns:
            按修改时间倒序的路径列表
        """
        if not os.path.isdir(directory):
            return []

        try:
            candidates = [
                os.path.join(directory, name)
                for name in os.listdir(directory)
                if name.lower().endswith('.zip')
            ]
        except OSError as e:
            logger.error(f"列出备份目录失败: {directory}: {e}")
            return []

        valid = [path for path in candidates if self.validate_backup(path)]
        return sorted(valid, key=os.path.getmtime, reverse=True)

    def restore_backup(self, backup_path: str) -> bool:
        """
        从备份包恢复数据库

        会关闭当前数据库句柄；当前数据库文件先另存为 <db>.backup_<时间戳>，
        再用备份中的 data.db 覆盖。之后的访问会重新打开恢复后的文件。

        Returns:
            是否成功
        """
        logger.info(f"开始恢复备份: {backup_path}")

        if not os.path.isfile(backup_path):
            logger.error(f"备份文件不存在: {backup_path}")
            return False

        if not self.validate_backup(backup_path):
            logger.error(f"备份文件无效: {backup_path}")
            return False

        current_db_path = self.data_layer.db_path

        try:
            with tempfile.TemporaryDirectory(prefix='guidestore_restore_') as temp_dir:
                with zipfile.ZipFile(backup_path, 'r') as archive:
                    entry = next(
                        n for n in archive.namelist() if os.path.basename(n) == DATABASE_ENTRY
                    )
                    temp_db_path = os.path.join(temp_dir, DATABASE_ENTRY)
                    with archive.open(entry) as src, open(temp_db_path, 'wb') as dst:
                        shutil.copyfileobj(src, dst)

                # 先 checkpoint 再关闭，保证另存的当前文件是完整的
                self.data_layer.checkpoint()
                self.data_layer.close()

                if os.path.exists(current_db_path):
                    timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
                    saved_path = f"{current_db_path}.backup_{timestamp}"
                    shutil.copyfile(current_db_path, saved_path)
                    logger.info(f"当前数据库已另存: {saved_path}")

                # 旧的 WAL 文件不属于恢复后的数据库
                for suffix in ('-wal', '-shm'):
                    stale = current_db_path + suffix
                    if os.path.exists(stale):
                        os.remove(stale)

                shutil.copyfile(temp_db_path, current_db_path)
        except (OSError, zipfile.BadZipFile, sqlite3.Error, GuideStoreError) as e:
            logger.error(f"恢复备份失败: {backup_path}: {e}")
            return False

        logger.info(f"数据库已从备份恢复: {backup_path}")
        return True
