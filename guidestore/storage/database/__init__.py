#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
数据库存储模块

提供数据库访问层，包括：
- GuideDataLayer: 统一数据层（门面类）
- 各个 Repository: 分领域的数据操作
"""

from guidestore.storage.database.data_layer import GuideDataLayer
from guidestore.storage.database.base import DatabaseManager, BaseRepository
from guidestore.storage.database.collection import Collection, DocumentRepository
from guidestore.storage.database.category_repository import CategoryRepository
from guidestore.storage.database.guide_repository import (
    BlobDeleteOutcome,
    GuideDeleteResult,
    GuideRepository,
)
from guidestore.storage.database.progress_repository import ProgressRepository
from guidestore.storage.database.settings_repository import SettingsRepository
from guidestore.storage.database.user_repository import UserRepository

__all__ = [
    # 主入口
    'GuideDataLayer',
    # 基础设施
    'DatabaseManager',
    'BaseRepository',
    'Collection',
    'DocumentRepository',
    # 各领域 Repository
    'CategoryRepository',
    'GuideRepository',
    'ProgressRepository',
    'SettingsRepository',
    'UserRepository',
    # 删除结果
    'BlobDeleteOutcome',
    'GuideDeleteResult',
]
