#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
通用集合仓储

Collection 对任意实体类型提供 CRUD 和谓词查询；
DocumentRepository 组合一个 Collection，是各领域 Repository 的基类。

谓词是普通的 Python 可调用对象，SQL 不会泄露到这一层之外。
领域 Repository 需要走索引时使用受保护的 query / count_where。
"""

import json
import sqlite3
import logging
from typing import (
    Any, Callable, Generic, Iterator, List, Optional, Sequence, Type, TypeVar
)

from guidestore.exceptions import DuplicateKeyError
from guidestore.models.entities import new_id
from guidestore.storage.database.base import BaseRepository, DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar('T')
Predicate = Callable[[T], bool]


class Collection(Generic[T]):
    """
    单个文档集合

    实体类型需要有 id 属性以及 to_dict() / from_dict()。
    """

    def __init__(self, db_manager: DatabaseManager, name: str, entity_type: Type[T]):
        self._db_manager = db_manager
        self.name = name
        self.entity_type = entity_type

    def _to_entity(self, row: sqlite3.Row) -> T:
        return self.entity_type.from_dict(json.loads(row['doc']))

    @staticmethod
    def _serialize(entity: Any) -> str:
        return json.dumps(entity.to_dict(), ensure_ascii=False)

    def _fetch_rows(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._db_manager.get_connection() as conn:
            return conn.execute(sql, params).fetchall()

    # ==================== 读取 ====================

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """根据 ID 获取文档，不存在返回 None"""
        if not entity_id:
            return None
        rows = self._fetch_rows(f'SELECT doc FROM {self.name} WHERE id = ?', (entity_id,))
        return self._to_entity(rows[0]) if rows else None

    def get_all(self) -> List[T]:
        """全部文档（不保证顺序）"""
        return [self._to_entity(row) for row in self._fetch_rows(f'SELECT doc FROM {self.name}')]

    def find(self, predicate: Predicate) -> Iterator[T]:
        """
        返回满足谓词的文档迭代器

        所有行在调用时一次性读入内存，只有反序列化和过滤推迟到迭代时进行，
        迭代过程中不占用数据库锁。
        """
        rows = self._fetch_rows(f'SELECT doc FROM {self.name}')

        def _iter():
            for row in rows:
                entity = self._to_entity(row)
                if predicate(entity):
                    yield entity

        return _iter()

    def first_or_default(self, predicate: Predicate) -> Optional[T]:
        """第一个满足谓词的文档，没有则返回 None"""
        return next(self.find(predicate), None)

    def count(self, predicate: Optional[Predicate] = None) -> int:
        """统计文档数量，不传谓词时统计全部"""
        if predicate is None:
            return self.count_where()
        return sum(1 for _ in self.find(predicate))

    def exists(self, predicate: Predicate) -> bool:
        """是否存在满足谓词的文档"""
        return self.first_or_default(predicate) is not None

    # ==================== 写入 ====================

    def insert(self, entity: T) -> str:
        """
        插入文档

        实体没有 ID 时自动生成并回写到实体上。

        Returns:
            文档 ID

        Raises:
            DuplicateKeyError: 违反唯一索引
        """
        entity_id = getattr(entity, 'id', None)
        if not entity_id:
            entity_id = new_id()
            entity.id = entity_id
        elif not isinstance(entity_id, str):
            raise TypeError(f"文档 ID 必须是字符串: {entity_id!r}")

        try:
            with self._db_manager.get_connection() as conn:
                conn.execute(
                    f'INSERT INTO {self.name} (id, doc) VALUES (?, ?)',
                    (entity_id, self._serialize(entity))
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(self.name, str(e)) from e

        logger.debug(f"[{self.name}] 插入文档: {entity_id}")
        return entity_id

    def update(self, entity: T) -> bool:
        """
        按 ID 整体替换文档

        Returns:
            不存在该 ID 时返回 False

        Raises:
            DuplicateKeyError: 违反唯一索引
        """
        entity_id = getattr(entity, 'id', None)
        if not entity_id:
            return False

        try:
            with self._db_manager.get_connection() as conn:
                cursor = conn.execute(
                    f'UPDATE {self.name} SET doc = ? WHERE id = ?',
                    (self._serialize(entity), entity_id)
                )
                return cursor.rowcount > 0
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(self.name, str(e)) from e

    def delete(self, entity_id: str) -> bool:
        """按 ID 删除文档"""
        if not entity_id:
            return False
        with self._db_manager.get_connection() as conn:
            cursor = conn.execute(f'DELETE FROM {self.name} WHERE id = ?', (entity_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"[{self.name}] 删除文档: {entity_id}")
        return deleted

    def delete_many(self, predicate: Predicate) -> int:
        """删除所有满足谓词的文档，返回删除数量"""
        ids = [entity.id for entity in self.find(predicate)]
        if not ids:
            return 0

        with self._db_manager.get_connection() as conn:
            cursor = conn.executemany(
                f'DELETE FROM {self.name} WHERE id = ?',
                [(entity_id,) for entity_id in ids]
            )
            removed = cursor.rowcount

        logger.debug(f"[{self.name}] 批量删除 {removed} 条文档")
        return removed

    # ==================== 索引查询（仅供 Repository 内部使用）====================

    def query(
        self,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[T]:
        """
        按 SQL 条件查询

        Args:
            where: WHERE 子句（不含 WHERE 关键字），使用 json_field 表达式以命中索引
            params: 参数
            order_by: ORDER BY 子句
            limit: 返回数量上限
        """
        sql = f'SELECT doc FROM {self.name}'
        params = list(params)

        if where:
            sql += f' WHERE {where}'
        if order_by:
            sql += f' ORDER BY {order_by}'
        if limit is not None:
            sql += ' LIMIT ?'
            params.append(limit)

        return [self._to_entity(row) for row in self._fetch_rows(sql, params)]

    def count_where(self, where: Optional[str] = None, params: Sequence[Any] = ()) -> int:
        """按 SQL 条件计数"""
        sql = f'SELECT COUNT(*) AS total FROM {self.name}'
        if where:
            sql += f' WHERE {where}'
        return self._fetch_rows(sql, params)[0]['total']


class DocumentRepository(BaseRepository, Generic[T]):
    """
    文档 Repository 基类

    子类声明 collection_name 和 entity_type，
    通用操作委托给内部的 Collection，子类按需覆盖。
    """

    collection_name: str = ''
    entity_type: Type[T] = None

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager)
        self.collection: Collection[T] = Collection(db_manager, self.collection_name, self.entity_type)

    def get_by_id(self, entity_id: str) -> Optional[T]:
        return self.collection.get_by_id(entity_id)

    def get_all(self) -> List[T]:
        return self.collection.get_all()

    def find(self, predicate: Predicate) -> Iterator[T]:
        return self.collection.find(predicate)

    def first_or_default(self, predicate: Predicate) -> Optional[T]:
        return self.collection.first_or_default(predicate)

    def insert(self, entity: T) -> str:
        return self.collection.insert(entity)

    def update(self, entity: T) -> bool:
        return self.collection.update(entity)

    def delete(self, entity_id: str) -> bool:
        return self.collection.delete(entity_id)

    def delete_many(self, predicate: Predicate) -> int:
        return self.collection.delete_many(predicate)

    def count(self, predicate: Optional[Predicate] = None) -> int:
        return self.collection.count(predicate)

    def exists(self, predicate: Predicate) -> bool:
        return self.collection.exists(predicate)
