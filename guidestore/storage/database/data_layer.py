#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
统一数据层 - GuideDataLayer 门面类

通过组合模式整合所有 Repository，它们共享同一个 DatabaseManager。
"""

import os
import logging
from typing import Dict, Optional

from guidestore.storage.blob_storage import BlobStore, DatabaseBlobStore
from guidestore.storage.database.base import (
    COLLECTIONS, FILES_TABLE, DatabaseManager
)
from guidestore.storage.database.category_repository import CategoryRepository
from guidestore.storage.database.guide_repository import GuideRepository
from guidestore.storage.database.progress_repository import ProgressRepository
from guidestore.storage.database.settings_repository import SettingsRepository
from guidestore.storage.database.user_repository import UserRepository

logger = logging.getLogger(__name__)


class GuideDataLayer:
    """
    统一数据层管理器（门面类）

    - CategoryRepository: 分类
    - GuideRepository: 指南（含图片级联删除）
    - ProgressRepository: 进度和统计
    - SettingsRepository: 键值设置
    - UserRepository: 用户
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        db_manager: Optional[DatabaseManager] = None,
        blob_store: Optional[BlobStore] = None,
        busy_timeout: float = 30.0
    ):
        """
        初始化 GuideDataLayer

        Args:
            db_path: 数据库文件路径，为 None 时使用默认路径
            db_manager: 已有的数据库句柄，传入时忽略 db_path
            blob_store: 图片存储，默认存在同一数据库文件里
            busy_timeout: 新建句柄时使用的等待秒数
        """
        self.logger = logging.getLogger(__name__)

        self._db_manager = db_manager or DatabaseManager(db_path, busy_timeout=busy_timeout)
        self._blob_store = blob_store or DatabaseBlobStore(self._db_manager)

        self._categories = CategoryRepository(self._db_manager)
        self._guides = GuideRepository(self._db_manager, self._blob_store)
        self._progress = ProgressRepository(self._db_manager)
        self._settings = SettingsRepository(self._db_manager)
        self._users = UserRepository(self._db_manager)

    def __enter__(self) -> 'GuideDataLayer':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ==================== 属性访问 ====================

    @property
    def db_manager(self) -> DatabaseManager:
        return self._db_manager

    @property
    def db_path(self) -> str:
        """数据库路径"""
        return self._db_manager.db_path

    @property
    def lock(self):
        """线程锁"""
        return self._db_manager.lock

    @property
    def blob_store(self) -> BlobStore:
        return self._blob_store

    @property
    def categories(self) -> CategoryRepository:
        return self._categories

    @property
    def guides(self) -> GuideRepository:
        return self._guides

    @property
    def progress(self) -> ProgressRepository:
        return self._progress

    @property
    def settings(self) -> SettingsRepository:
        return self._settings

    @property
    def users(self) -> UserRepository:
        return self._users

    # ==================== 维护 ====================

    def get_collection_counts(self) -> Dict[str, int]:
        """
        各集合的文档数量

        Returns:
            {集合名: 数量}，另含 _files（数据库内的图片数量）
        """
        counts = {}
        with self._db_manager.get_connection() as conn:
            for name in COLLECTIONS + (FILES_TABLE,):
                row = conn.execute(f'SELECT COUNT(*) AS total FROM {name}').fetchone()
                counts[name] = row['total']
        return counts

    def get_file_size(self) -> int:
        """数据库文件大小（字节），文件不存在返回 0"""
        if not os.path.exists(self.db_path):
            return 0
        return os.path.getsize(self.db_path)

    def checkpoint(self) -> None:
        self._db_manager.checkpoint()

    def backup(self, destination_path: Optional[str] = None) -> str:
        """备份数据库文件，返回备份路径"""
        return self._db_manager.backup(destination_path)

    def close(self) -> None:
        """关闭底层数据库句柄"""
        self._db_manager.close()
