#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Guide Repository - 指南

步骤作为子文档内嵌在指南中；步骤引用的图片存在 BlobStore 里，
删除指南时需要同时清理两边。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from guidestore.models.entities import Guide
from guidestore.storage.blob_storage import BlobStore, DatabaseBlobStore
from guidestore.storage.database.base import DatabaseManager, GUIDES, json_field
from guidestore.storage.database.collection import DocumentRepository
from guidestore.utils.time_utils import utcnow

TITLE_ORDER = f"{json_field('title')} COLLATE NOCASE, id"


def _escape_like(value: str) -> str:
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass
class BlobDeleteOutcome:
    """单个图片的删除结果"""
    image_id: str
    deleted: bool
    error: Optional[str] = None


@dataclass
class GuideDeleteResult:
    """
    指南删除结果

    先删图片再删文档。中途崩溃时最坏情况是留下孤立图片，
    而不是指南引用已经不存在的图片。
    """
    guide_id: str
    found: bool = False
    deleted: bool = False
    blob_outcomes: List[BlobDeleteOutcome] = field(default_factory=list)

    @property
    def failed_image_ids(self) -> List[str]:
        return [o.image_id for o in self.blob_outcomes if o.error is not None]


class GuideRepository(DocumentRepository[Guide]):
    """指南管理"""

    collection_name = GUIDES
    entity_type = Guide

    def __init__(self, db_manager: DatabaseManager, blob_store: Optional[BlobStore] = None):
        """
        Args:
            db_manager: 共享的数据库句柄
            blob_store: 图片存储，默认使用同一数据库文件里的 DatabaseBlobStore
        """
        super().__init__(db_manager)
        self.blob_store = blob_store or DatabaseBlobStore(db_manager)

    def get_all(self) -> List[Guide]:
        """按标题字母序返回全部指南"""
        return self.collection.query(order_by=TITLE_ORDER)

    def search(self, query: Optional[str]) -> List[Guide]:
        """
        在标题、描述、分类中做大小写不敏感的子串搜索

        Args:
            query: 关键字，为空或全是空白时返回全部指南

        Returns:
            按标题排序的匹配指南
        """
        if query is None or not query.strip():
            return self.get_all()

        pattern = f"%{_escape_like(query.strip().lower())}%"
        where = ' OR '.join(
            f"py_lower({json_field(name)}) LIKE ? ESCAPE '\\'"
            for name in ('title', 'description', 'category')
        )
        return self.collection.query(where, (pattern, pattern, pattern), order_by=TITLE_ORDER)

    def get_by_category(self, category: str) -> List[Guide]:
        """
        获取某分类下的指南（分类名大小写不敏感）

        Returns:
            按标题排序的指南，分类名为空返回空列表
        """
        if not category or not category.strip():
            return []

        return self.collection.query(
            f"py_lower({json_field('category')}) = ?",
            (category.lower(),),
            order_by=TITLE_ORDER
        )

    def get_recently_modified(self, count: int = 10) -> List[Guide]:
        """
        最近修改的指南

        Args:
            count: 返回数量

        Returns:
            按 updated_at 倒序的前 count 个指南
        """
        if count <= 0:
            return []

        return self.collection.query(
            order_by=f"{json_field('updated_at')} DESC",
            limit=count
        )

    def get_category_count(self, category: str) -> int:
        """某分类下的指南数量（分类名大小写不敏感）"""
        if not category or not category.strip():
            return 0

        return self.collection.count_where(
            f"py_lower({json_field('category')}) = ?",
            (category.lower(),)
        )

    def get_distinct_categories(self) -> List[str]:
        """
        指南实际使用的分类名

        与 categories 集合无关。大小写不敏感去重，同一分类保留插入顺序中最先出现的写法，按字母序返回。
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT {json_field('category')} AS category FROM {GUIDES} ORDER BY rowid"
            ).fetchall()

        seen = {}
        for row in rows:
            name = row['category']
            if not name or not name.strip():
                continue
            seen.setdefault(name.lower(), name)

        return [seen[key] for key in sorted(seen)]

    def update(self, entity: Guide) -> bool:
        """更新指南，updated_at 总是重置为当前时间"""
        entity.updated_at = utcnow()
        return super().update(entity)

    def delete(self, entity_id: str) -> bool:
        """
        删除指南及其所有步骤引用的图片

        Returns:
            指南文档被删除返回 True，指南不存在返回 False
        """
        return self.delete_with_report(entity_id).deleted

    def delete_with_report(self, entity_id: str) -> GuideDeleteResult:
        """
        删除指南并返回每个图片的删除结果

        两个存储之间没有事务：
        1. 逐个删除图片，单个失败只记录，不影响其余图片和指南文档
        2. 删除指南文档
        """
        result = GuideDeleteResult(guide_id=entity_id)

        guide = self.get_by_id(entity_id)
        if guide is None:
            return result
        result.found = True

        for image_id in guide.image_ids():
            try:
                deleted = self.blob_store.delete(image_id)
                result.blob_outcomes.append(BlobDeleteOutcome(image_id, deleted))
            except Exception as e:
                self.logger.warning(f"删除图片失败，继续删除其余内容: {image_id}: {e}")
                result.blob_outcomes.append(BlobDeleteOutcome(image_id, False, str(e)))

        result.deleted = self.collection.delete(entity_id)

        self.logger.info(
            f"指南已删除: {entity_id}, 图片 {len(result.blob_outcomes)} 个, "
            f"失败 {len(result.failed_image_ids)} 个"
        )
        return result
