#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Settings Repository - 应用设置

key 唯一；value 是调用方编码好的字符串（通常是 JSON），这里不做解析。
"""

from typing import List, Optional

from guidestore.models.entities import AppSetting
from guidestore.storage.database.base import SETTINGS, json_field
from guidestore.storage.database.collection import DocumentRepository
from guidestore.utils.time_utils import utcnow

KEY = json_field('key')


class SettingsRepository(DocumentRepository[AppSetting]):
    """键值设置"""

    collection_name = SETTINGS
    entity_type = AppSetting

    def get_by_key(self, key: str) -> Optional[AppSetting]:
        results = self.collection.query(f'{KEY} = ?', (key,), limit=1)
        return results[0] if results else None

    def get_value(self, key: str) -> Optional[str]:
        """
        读取设置值

        Returns:
            设置值，不存在返回 None
        """
        setting = self.get_by_key(key)
        return setting.value if setting else None

    def set_value(self, key: str, value: str) -> None:
        """写入设置值：已存在则原地更新，否则插入"""
        setting = self.get_by_key(key)

        if setting is not None:
            setting.value = value
            setting.updated_at = utcnow()
            self.update(setting)
        else:
            self.insert(AppSetting(key=key, value=value, updated_at=utcnow()))

    def delete_by_key(self, key: str) -> bool:
        """删除设置，至少删掉一条返回 True"""
        with self._get_connection() as conn:
            cursor = conn.execute(f'DELETE FROM {SETTINGS} WHERE {KEY} = ?', (key,))
            return cursor.rowcount > 0

    def list_keys(self) -> List[str]:
        """全部设置键，按字母序"""
        with self._get_connection() as conn:
            rows = conn.execute(f'SELECT {KEY} AS key FROM {SETTINGS} ORDER BY {KEY}').fetchall()
        return [row['key'] for row in rows]
