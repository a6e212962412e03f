#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Category Repository - 指南分类

分类名大小写不敏感唯一，由文档中 name_key 字段（Python casefold）上的唯一索引保证。
"""

from typing import List, Optional, Union

from guidestore.models.entities import Category, category_name_key
from guidestore.storage.database.base import CATEGORIES, json_field
from guidestore.storage.database.collection import DocumentRepository, Predicate
from guidestore.utils.time_utils import utcnow

NAME_KEY = json_field('name_key')


class CategoryRepository(DocumentRepository[Category]):
    """分类管理"""

    collection_name = CATEGORIES
    entity_type = Category

    def get_by_name(self, name: str) -> Optional[Category]:
        """
        按名称获取分类（大小写不敏感）

        Args:
            name: 分类名称

        Returns:
            分类，不存在或名称为空返回 None
        """
        if not name or not name.strip():
            return None

        results = self.collection.query(f'{NAME_KEY} = ?', (category_name_key(name),), limit=1)
        return results[0] if results else None

    def exists(
        self,
        name: Union[str, Predicate],
        exclude_id: Optional[str] = None
    ) -> bool:
        """
        检查同名分类是否存在（大小写不敏感）

        编辑分类时传入 exclude_id，排除分类自身，用于重命名校验。
        传入可调用对象时按通用谓词查询处理。

        Args:
            name: 分类名称或谓词
            exclude_id: 要排除的分类 ID

        Returns:
            存在返回 True
        """
        if callable(name):
            return super().exists(name)

        if not name or not name.strip():
            return False

        where = f'{NAME_KEY} = ?'
        params = [category_name_key(name)]
        if exclude_id:
            where += ' AND id != ?'
            params.append(exclude_id)

        return self.collection.count_where(where, params) > 0

    def get_all(self) -> List[Category]:
        """按名称字母序返回全部分类"""
        return self.collection.query(
            order_by=f"{NAME_KEY}, id"
        )

    def update(self, entity: Category) -> bool:
        """更新分类，updated_at 总是重置为当前时间"""
        entity.updated_at = utcnow()
        return super().update(entity)

    def insert_if_not_exists(self, entity: Category) -> Optional[str]:
        """
        名称不存在时插入

        Returns:
            新分类 ID，同名分类已存在返回 None
        """
        if self.exists(entity.name):
            return None
        return self.insert(entity)

    def ensure_category(self, name: str) -> Category:
        """
        按名称获取分类，不存在则创建

        检查和插入之间没有加锁，多个调用方并发时可能都走到插入，
        后到者触发唯一索引冲突。单用户桌面场景下接受这个风险。

        Args:
            name: 分类名称

        Returns:
            已有的或新建的分类
        """
        existing = self.get_by_name(name)
        if existing is not None:
            return existing

        now = utcnow()
        category = Category(
            name=name,
            description=f"Auto-created category: {name}",
            created_at=now,
            updated_at=now
        )
        self.insert(category)
        self.logger.info(f"自动创建分类: {name} ({category.id})")
        return category
