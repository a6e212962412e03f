#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
二进制存储（步骤图片）

BlobStore 是 GuideRepository 删除级联使用的接口，提供两种实现：
- DatabaseBlobStore: 存在同一个数据库文件的 _files 表里
- FileBlobStore: 每个 blob 一个文件，放在指定目录下

ImageStorage 在 BlobStore 之上做图片校验和元数据查询。
"""

import os
import uuid
import hashlib
import logging
import mimetypes
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from guidestore.exceptions import ImageValidationError
from guidestore.storage.database.base import DatabaseManager, FILES_TABLE
from guidestore.utils.time_utils import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB
ALLOWED_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp')
DEFAULT_MIME_TYPE = 'application/octet-stream'


def new_blob_id() -> str:
    """生成图片 ID: img_<32位十六进制>"""
    return f"img_{uuid.uuid4().hex}"


def guess_mime_type(filename: Optional[str]) -> str:
    """根据文件名推断 MIME 类型"""
    if not filename:
        return DEFAULT_MIME_TYPE
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


@dataclass
class BlobInfo:
    """blob 元数据"""
    blob_id: str
    filename: str
    length: int
    mime_type: str
    uploaded_at: Optional[datetime] = None


class BlobStore(ABC):
    """按不透明 ID 存取二进制数据"""

    @abstractmethod
    def store(self, data: bytes, filename: Optional[str] = None) -> str:
        """保存数据，返回新 ID"""

    @abstractmethod
    def retrieve(self, blob_id: str) -> Optional[bytes]:
        """读取数据，不存在返回 None"""

    @abstractmethod
    def delete(self, blob_id: str) -> bool:
        """删除数据，不存在返回 False"""

    @abstractmethod
    def get_info(self, blob_id: str) -> Optional[BlobInfo]:
        """读取元数据，不存在返回 None"""

    def exists(self, blob_id: str) -> bool:
        return self.get_info(blob_id) is not None


class DatabaseBlobStore(BlobStore):
    """把 blob 存在数据库文件的 _files 表中"""

    def __init__(self, db_manager: DatabaseManager):
        self._db_manager = db_manager

    def store(self, data: bytes, filename: Optional[str] = None) -> str:
        blob_id = new_blob_id()
        with self._db_manager.get_connection() as conn:
            conn.execute(
                f'''
                INSERT INTO {FILES_TABLE} (id, filename, mime_type, length, uploaded_at, data)
                VALUES (?, ?, ?, ?, ?, ?)
                ''',
                (
                    blob_id,
                    filename or '',
                    guess_mime_type(filename),
                    len(data),
                    format_timestamp(utcnow()),
                    data
                )
            )
        logger.debug(f"blob 已保存: {blob_id} ({len(data)} bytes)")
        return blob_id

    def retrieve(self, blob_id: str) -> Optional[bytes]:
        with self._db_manager.get_connection() as conn:
            row = conn.execute(
                f'SELECT data FROM {FILES_TABLE} WHERE id = ?', (blob_id,)
            ).fetchone()
        return bytes(row['data']) if row else None

    def delete(self, blob_id: str) -> bool:
        with self._db_manager.get_connection() as conn:
            cursor = conn.execute(f'DELETE FROM {FILES_TABLE} WHERE id = ?', (blob_id,))
            return cursor.rowcount > 0

    def get_info(self, blob_id: str) -> Optional[BlobInfo]:
        with self._db_manager.get_connection() as conn:
            row = conn.execute(
                f'SELECT id, filename, mime_type, length, uploaded_at FROM {FILES_TABLE} WHERE id = ?',
                (blob_id,)
            ).fetchone()
        if not row:
            return None
        return BlobInfo(
            blob_id=row['id'],
            filename=row['filename'],
            length=row['length'],
            mime_type=row['mime_type'],
            uploaded_at=parse_timestamp(row['uploaded_at'])
        )

    def list_ids(self) -> List[str]:
        """全部 blob ID"""
        with self._db_manager.get_connection() as conn:
            rows = conn.execute(f'SELECT id FROM {FILES_TABLE} ORDER BY id').fetchall()
        return [row['id'] for row in rows]


class FileBlobStore(BlobStore):
    """每个 blob 存成 <base_dir>/<ID 的 md5 前两位>/<ID>.bin"""

    def __init__(self, base_dir: str):
        """
        Args:
            base_dir: blob 根目录
        """
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

        # 文件写入锁
        self.lock = threading.RLock()

    def _path(self, blob_id: str) -> str:
        # ID 来自调用方，只取 basename，防止路径穿越
        bucket = hashlib.md5(blob_id.encode('utf-8')).hexdigest()[:2]
        safe_name = os.path.basename(blob_id)
        return os.path.join(self.base_dir, bucket, f"{safe_name}.bin")

    def store(self, data: bytes, filename: Optional[str] = None) -> str:
        blob_id = new_blob_id()
        path = self._path(blob_id)

        with self.lock:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as f:
                f.write(data)
            if filename:
                with open(path + '.name', 'w', encoding='utf-8') as f:
                    f.write(filename)

        logger.debug(f"blob 已保存: {path}")
        return blob_id

    def retrieve(self, blob_id: str) -> Optional[bytes]:
        path = self._path(blob_id)
        if not os.path.exists(path):
            return None
        with open(path, 'rb') as f:
            return f.read()

    def delete(self, blob_id: str) -> bool:
        path = self._path(blob_id)
        with self.lock:
            if not os.path.exists(path):
                return False
            os.remove(path)
            if os.path.exists(path + '.name'):
                os.remove(path + '.name')
        return True

    def get_info(self, blob_id: str) -> Optional[BlobInfo]:
        path = self._path(blob_id)
        if not os.path.exists(path):
            return None

        filename = ''
        if os.path.exists(path + '.name'):
            with open(path + '.name', 'r', encoding='utf-8') as f:
                filename = f.read()

        stat = os.stat(path)
        return BlobInfo(
            blob_id=blob_id,
            filename=filename,
            length=stat.st_size,
            mime_type=guess_mime_type(filename),
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc)
        )


@dataclass
class ImageValidationResult:
    """图片校验结果"""
    is_valid: bool
    error_message: str = ''

    @classmethod
    def success(cls) -> 'ImageValidationResult':
        return cls(is_valid=True)

    @classmethod
    def fail(cls, message: str) -> 'ImageValidationResult':
        return cls(is_valid=False, error_message=message)


@dataclass
class ImageMetadata:
    """图片元数据"""
    file_id: str
    file_name: str
    size_in_bytes: int
    mime_type: str
    uploaded_at: Optional[datetime]


class ImageStorage:
    """步骤图片的上传、读取、删除，上传前校验格式和大小"""

    def __init__(self, blob_store: BlobStore, max_size_bytes: int = MAX_IMAGE_SIZE_BYTES):
        self.blob_store = blob_store
        self.max_size_bytes = max_size_bytes

    def validate_image(self, data: Optional[bytes], file_name: str) -> ImageValidationResult:
        """
        校验图片

        Args:
            data: 图片内容
            file_name: 原始文件名，用于检查扩展名

        Returns:
            校验结果
        """
        if not data:
            return ImageValidationResult.fail("图片内容为空")

        if not file_name or not file_name.strip():
            return ImageValidationResult.fail("文件名为空")

        ext = os.path.splitext(file_name)[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            return ImageValidationResult.fail(
                f"不支持的图片格式，允许: {', '.join(ALLOWED_EXTENSIONS)}"
            )

        if len(data) > self.max_size_bytes:
            max_mb = self.max_size_bytes // (1024 * 1024)
            return ImageValidationResult.fail(f"图片超过最大限制 {max_mb}MB")

        return ImageValidationResult.success()

    def upload_image(self, data: bytes, file_name: str) -> str:
        """
        上传图片

        Returns:
            图片 ID

        Raises:
            ImageValidationError: 校验失败
        """
        result = self.validate_image(data, file_name)
        if not result.is_valid:
            raise ImageValidationError(result.error_message)

        try:
            file_id = self.blob_store.store(data, file_name)
        except Exception as e:
            logger.error(f"图片上传失败: {file_name}: {e}")
            raise

        logger.info(f"图片已上传: {file_id}, 大小: {len(data)} bytes")
        return file_id

    def get_image(self, file_id: str) -> Optional[bytes]:
        """读取图片，不存在返回 None"""
        if not file_id or not file_id.strip():
            raise ValueError("图片 ID 不能为空")

        data = self.blob_store.retrieve(file_id)
        if data is None:
            logger.warning(f"图片不存在: {file_id}")
        return data

    def delete_image(self, file_id: str) -> bool:
        """删除图片，不存在返回 False"""
        if not file_id or not file_id.strip():
            raise ValueError("图片 ID 不能为空")

        deleted = self.blob_store.delete(file_id)
        if deleted:
            logger.info(f"图片已删除: {file_id}")
        else:
            logger.warning(f"要删除的图片不存在: {file_id}")
        return deleted

    def get_image_metadata(self, file_id: str) -> Optional[ImageMetadata]:
        """读取图片元数据，不存在返回 None"""
        if not file_id or not file_id.strip():
            raise ValueError("图片 ID 不能为空")

        info = self.blob_store.get_info(file_id)
        if info is None:
            return None

        return ImageMetadata(
            file_id=info.blob_id,
            file_name=info.filename,
            size_in_bytes=info.length,
            mime_type=info.mime_type,
            uploaded_at=info.uploaded_at
        )
