#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
数据库基础层 - 连接管理与集合初始化

SQLite 作为文档库使用：每个集合一张表，每行一个 JSON 文档，
索引建在 json_extract 表达式上。
"""

import os
import shutil
import sqlite3
import logging
import threading
from datetime import datetime
from typing import List, Optional, Tuple
from contextlib import contextmanager

from guidestore.exceptions import DatabaseOpenError

logger = logging.getLogger(__name__)


# 集合名称
USERS = 'users'
SETTINGS = 'settings'
GUIDES = 'guides'
CATEGORIES = 'categories'
PROGRESS = 'progress'

COLLECTIONS = (USERS, SETTINGS, GUIDES, CATEGORIES, PROGRESS)

# 图片等二进制数据，与文档集合放在同一个文件里
FILES_TABLE = '_files'


def json_field(name: str) -> str:
    """
    文档字段的 SQL 表达式

    查询必须使用与索引完全相同的表达式，SQLite 才会走表达式索引。
    """
    return f"json_extract(doc, '$.{name}')"


# (索引名, 集合, 表达式, 是否唯一)
INDEXES: List[Tuple[str, str, str, bool]] = [
    ('idx_users_role', USERS, json_field('role'), False),
    ('idx_settings_key', SETTINGS, json_field('key'), True),
    ('idx_guides_title', GUIDES, json_field('title'), False),
    ('idx_guides_category', GUIDES, json_field('category'), False),
    ('idx_guides_updated_at', GUIDES, json_field('updated_at'), False),
    ('idx_categories_name_key', CATEGORIES, json_field('name_key'), True),
    ('idx_progress_user_guide', PROGRESS, f"{json_field('user_id')}, {json_field('guide_id')}", True),
    ('idx_progress_user_id', PROGRESS, json_field('user_id'), False),
    ('idx_progress_guide_id', PROGRESS, json_field('guide_id'), False),
    ('idx_progress_completed_at', PROGRESS, json_field('completed_at'), False),
    ('idx_progress_last_accessed_at', PROGRESS, json_field('last_accessed_at'), False),
]


def _py_lower(value):
    """SQLite 自带的 lower() 只处理 ASCII"""
    return value.lower() if isinstance(value, str) else value


def get_default_db_path() -> str:
    """
    获取默认数据库路径

    Returns:
        数据库文件路径: data/guidestore.db
    """
    # __file__ = guidestore/storage/database/base.py
    # 需要往上走4级才能到项目根目录
    base_dir = os.path.abspath(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
    )
    return os.path.join(base_dir, 'data', 'guidestore.db')


class DatabaseManager:
    """
    数据库句柄

    负责：
    - 独占数据库文件，首次使用时才真正打开连接（同一实例只打开一次）
    - 打开时初始化集合和索引
    - checkpoint / backup / close

    进程启动时显式创建一个实例，再把它传给所有 Repository；
    Repository 只引用句柄，从不关闭它。
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: float = 30.0):
        """
        Args:
            db_path: 数据库文件路径，默认 data/guidestore.db
            busy_timeout: 等待其他进程释放写锁的秒数
        """
        self.logger = logging.getLogger(__name__)
        self.db_path = db_path or get_default_db_path()
        self.busy_timeout = busy_timeout

        # 所有读写都串行化在同一个连接上
        self.lock = threading.RLock()
        self._open_lock = threading.Lock()
        self._connection: Optional[sqlite3.Connection] = None

    def __enter__(self) -> 'DatabaseManager':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_open(self) -> bool:
        """连接是否已经建立"""
        return self._connection is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """共享连接，首次访问时打开"""
        return self.open()

    def open(self) -> sqlite3.Connection:
        """
        打开数据库（幂等）

        并发的首次访问只会打开一次物理连接。

        Raises:
            DatabaseOpenError: 文件被锁定、损坏或无权限
        """
        conn = self._connection
        if conn is not None:
            return conn

        with self._open_lock:
            if self._connection is not None:
                return self._connection

            directory = os.path.dirname(os.path.abspath(self.db_path))
            conn = None
            try:
                os.makedirs(directory, exist_ok=True)
                conn = sqlite3.connect(
                    self.db_path,
                    timeout=self.busy_timeout,
                    check_same_thread=False
                )
                conn.row_factory = sqlite3.Row  # 使结果可以通过列名访问
                conn.create_function('py_lower', 1, _py_lower, deterministic=True)

                # WAL 允许另一个协作进程同时读写同一个文件
                conn.execute('PRAGMA journal_mode=WAL')
                conn.execute('PRAGMA synchronous=NORMAL')
                conn.execute('PRAGMA temp_store=MEMORY')

                self.ensure_schema(conn)
            except (sqlite3.Error, OSError) as e:
                if conn is not None:
                    conn.close()
                self.logger.error(f"打开数据库失败: {self.db_path}: {e}")
                raise DatabaseOpenError(self.db_path, e) from e

            self._connection = conn
            self.logger.info(f"数据库已打开: {self.db_path}")
            return conn

    def ensure_schema(self, conn: Optional[sqlite3.Connection] = None) -> None:
        """
        初始化集合表和索引

        全部使用 IF NOT EXISTS，对已初始化的文件重复执行没有影响。

        Args:
            conn: 指定连接，默认使用共享连接
        """
        conn = conn or self.connection
        cursor = conn.cursor()

        for name in COLLECTIONS:
            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {name} (
                    id TEXT PRIMARY KEY,
                    doc TEXT NOT NULL
                )
            ''')

        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {FILES_TABLE} (
                id TEXT PRIMARY KEY,
                filename TEXT NOT NULL DEFAULT '',
                mime_type TEXT NOT NULL DEFAULT 'application/octet-stream',
                length INTEGER NOT NULL DEFAULT 0,
                uploaded_at TEXT NOT NULL,
                data BLOB NOT NULL
            )
        ''')

        for index_name, collection, expression, unique in INDEXES:
            unique_sql = 'UNIQUE ' if unique else ''
            cursor.execute(
                f'CREATE {unique_sql}INDEX IF NOT EXISTS {index_name} '
                f'ON {collection}({expression})'
            )

        conn.commit()

    @contextmanager
    def get_connection(self):
        """
        获取数据库连接的上下文管理器

        成功退出时提交，异常时回滚并继续抛出。

        Yields:
            sqlite3.Connection: 共享连接
        """
        with self.lock:
            conn = self.connection
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"数据库操作失败: {e}")
                raise

    def checkpoint(self) -> None:
        """把 WAL 中的数据写回主文件；连接从未打开时什么都不做"""
        with self.lock:
            conn = self._connection
            if conn is None:
                return
            conn.execute('PRAGMA wal_checkpoint(TRUNCATE)')
        self.logger.debug(f"checkpoint 完成: {self.db_path}")

    def get_default_backup_path(self) -> str:
        """默认备份路径: <数据库目录>/backups/data_backup_<时间戳>.<扩展名>"""
        directory = os.path.dirname(os.path.abspath(self.db_path))
        ext = os.path.splitext(self.db_path)[1] or '.db'
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return os.path.join(directory, 'backups', f'data_backup_{timestamp}{ext}')

    def backup(self, destination_path: Optional[str] = None) -> str:
        """
        备份数据库文件

        先 checkpoint 再整文件复制，两步之间不加锁，
        期间其他进程的写入可能不包含在备份里。

        Args:
            destination_path: 目标路径，默认见 get_default_backup_path

        Returns:
            备份文件路径
        """
        target_path = destination_path or self.get_default_backup_path()
        target_dir = os.path.dirname(os.path.abspath(target_path))
        os.makedirs(target_dir, exist_ok=True)

        # 确保文件存在且 schema 已初始化
        self.open()
        self.checkpoint()
        shutil.copyfile(self.db_path, target_path)

        self.logger.info(f"数据库已备份: {target_path}")
        return target_path

    def close(self) -> None:
        """关闭连接（幂等，从未打开也可以调用）"""
        # 加锁顺序与 get_connection -> open 保持一致: lock 在前
        with self.lock, self._open_lock:
            conn = self._connection
            if conn is None:
                return
            conn.close()
            self._connection = None
        self.logger.info(f"数据库已关闭: {self.db_path}")


class BaseRepository:
    """
    Repository 基类

    提供数据库访问的基础能力，所有 Repository 继承此类。
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        初始化 Repository

        Args:
            db_manager: 共享的数据库句柄
        """
        if db_manager is None:
            raise ValueError("db_manager 不能为空")
        self._db_manager = db_manager
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def db_manager(self) -> DatabaseManager:
        """数据库句柄"""
        return self._db_manager

    @property
    def db_path(self) -> str:
        """数据库路径"""
        return self._db_manager.db_path

    @property
    def lock(self) -> threading.RLock:
        """线程锁"""
        return self._db_manager.lock

    @contextmanager
    def _get_connection(self):
        """获取数据库连接"""
        with self._db_manager.get_connection() as conn:
            yield conn
