#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
存储配置

优先级: 环境变量 GUIDESTORE_* > config/*.yaml 的 database / storage 段 > 默认值
"""

import os
from typing import Any, Dict, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guidestore.storage.blob_storage import BlobStore, DatabaseBlobStore, FileBlobStore
from guidestore.storage.database.base import DatabaseManager, get_default_db_path
from guidestore.storage.database.data_layer import GuideDataLayer
from guidestore.utils.config import get_config

ENV_PREFIX = 'GUIDESTORE_'

# YAML 键 -> StoreSettings 字段
_YAML_FIELDS = {
    'database': {
        'path': 'db_path',
        'busy_timeout': 'busy_timeout',
        'backup_dir': 'backup_dir',
    },
    'storage': {
        'blob_backend': 'blob_backend',
        'blob_dir': 'blob_dir',
        'max_image_size_mb': 'max_image_size_mb',
    },
}


class StoreSettings(BaseSettings):
    """存储层配置"""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_prefix=ENV_PREFIX,
        extra='ignore'
    )

    # 数据库
    db_path: Optional[str] = None
    busy_timeout: float = 30.0
    backup_dir: Optional[str] = None

    # 图片
    blob_backend: Literal['database', 'filesystem'] = 'database'
    blob_dir: Optional[str] = None
    max_image_size_mb: int = 10

    @field_validator('busy_timeout')
    @classmethod
    def validate_busy_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError('busy_timeout 不能为负数')
        return v

    @field_validator('max_image_size_mb')
    @classmethod
    def validate_max_image_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError('max_image_size_mb 必须大于 0')
        return v

    @property
    def resolved_db_path(self) -> str:
        return self.db_path or get_default_db_path()

    @property
    def resolved_backup_dir(self) -> str:
        """备份目录，默认 <数据库目录>/backups"""
        if self.backup_dir:
            return self.backup_dir
        return os.path.join(os.path.dirname(os.path.abspath(self.resolved_db_path)), 'backups')

    @property
    def resolved_blob_dir(self) -> str:
        """文件系统图片目录，默认 <数据库目录>/images"""
        if self.blob_dir:
            return self.blob_dir
        return os.path.join(os.path.dirname(os.path.abspath(self.resolved_db_path)), 'images')

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024


def load_settings(config: Optional[Dict[str, Any]] = None) -> StoreSettings:
    """
    合并 YAML 配置和环境变量

    Args:
        config: get_config() 的结果，为 None 时自动加载

    Returns:
        StoreSettings 实例
    """
    if config is None:
        config = get_config()

    values = {}
    for section, mapping in _YAML_FIELDS.items():
        section_config = config.get(section) or {}
        for yaml_key, field_name in mapping.items():
            value = section_config.get(yaml_key)
            if value is None or value == '':
                continue
            # 环境变量优先
            if f'{ENV_PREFIX}{field_name.upper()}' in os.environ:
                continue
            values[field_name] = value

    return StoreSettings(**values)


def create_blob_store(settings: StoreSettings, db_manager: DatabaseManager) -> BlobStore:
    """按 blob_backend 创建图片存储"""
    if settings.blob_backend == 'filesystem':
        return FileBlobStore(settings.resolved_blob_dir)
    return DatabaseBlobStore(db_manager)


def create_data_layer(settings: Optional[StoreSettings] = None) -> GuideDataLayer:
    """
    按配置创建数据层

    Args:
        settings: 为 None 时调用 load_settings()
    """
    settings = settings or load_settings()
    db_manager = DatabaseManager(settings.resolved_db_path, busy_timeout=settings.busy_timeout)
    return GuideDataLayer(
        db_manager=db_manager,
        blob_store=create_blob_store(settings, db_manager)
    )
