#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Pytest 共享 Fixtures
"""

import os
import sys
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

# 添加项目根目录到路径
PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from guidestore.models.entities import Category, Guide, Progress, Step
from guidestore.storage.blob_storage import BlobInfo, BlobStore


BASE_TIME = datetime(2025, 1, 15, 8, 0, 0, tzinfo=timezone.utc)


class FakeBlobStore(BlobStore):
    """
    内存 BlobStore

    记录所有 delete 调用；fail_on 中的 ID 删除时抛出 IOError。
    """

    def __init__(self, fail_on: Optional[List[str]] = None):
        self.blobs: Dict[str, bytes] = {}
        self.deleted_calls: List[str] = []
        self.fail_on = set(fail_on or [])
        self._counter = 0

    def store(self, data: bytes, filename: Optional[str] = None) -> str:
        self._counter += 1
        blob_id = f"img_fake_{self._counter}"
        self.blobs[blob_id] = data
        return blob_id

    def retrieve(self, blob_id: str) -> Optional[bytes]:
        return self.blobs.get(blob_id)

    def delete(self, blob_id: str) -> bool:
        self.deleted_calls.append(blob_id)
        if blob_id in self.fail_on:
            raise IOError(f"simulated failure for {blob_id}")
        return self.blobs.pop(blob_id, None) is not None

    def get_info(self, blob_id: str) -> Optional[BlobInfo]:
        if blob_id not in self.blobs:
            return None
        return BlobInfo(blob_id=blob_id, filename='', length=len(self.blobs[blob_id]),
                        mime_type='application/octet-stream')


@pytest.fixture(scope="session")
def project_root():
    """项目根目录"""
    return PROJECT_ROOT


@pytest.fixture(scope="function")
def temp_dir():
    """临时目录"""
    path = tempfile.mkdtemp()
    yield path
    # 清理
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture(scope="function")
def temp_db_path(temp_dir):
    """临时测试数据库路径"""
    return os.path.join(temp_dir, "test_guidestore.db")


@pytest.fixture(scope="function")
def db_manager(temp_db_path):
    """临时数据库句柄，测试结束后关闭"""
    from guidestore.storage.database.base import DatabaseManager

    manager = DatabaseManager(temp_db_path)
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def fake_blob_store():
    return FakeBlobStore()


@pytest.fixture(scope="function")
def data_layer(db_manager, fake_blob_store):
    """使用内存 BlobStore 的 GuideDataLayer"""
    from guidestore.storage.database.data_layer import GuideDataLayer

    return GuideDataLayer(db_manager=db_manager, blob_store=fake_blob_store)


@pytest.fixture
def category_repo(data_layer):
    return data_layer.categories


@pytest.fixture
def guide_repo(data_layer):
    return data_layer.guides


@pytest.fixture
def progress_repo(data_layer):
    return data_layer.progress


@pytest.fixture
def settings_repo(data_layer):
    return data_layer.settings


@pytest.fixture
def user_repo(data_layer):
    return data_layer.users


def make_guide(title: str = "Installing a Cisco Router",
               category: str = "Network",
               step_count: int = 3,
               image_ids_per_step: Optional[List[List[str]]] = None,
               updated_at: Optional[datetime] = None,
               **kwargs) -> Guide:
    """构造测试指南"""
    steps = []
    for i in range(step_count):
        image_ids = image_ids_per_step[i] if image_ids_per_step and i < len(image_ids_per_step) else []
        steps.append(Step(order=i + 1, title=f"Step {i + 1}", content=f"Do thing {i + 1}",
                          image_ids=list(image_ids)))

    guide = Guide(
        title=title,
        description=kwargs.pop('description', f"How to: {title}"),
        category=category,
        estimated_minutes=kwargs.pop('estimated_minutes', 30),
        steps=steps,
        created_by=kwargs.pop('created_by', 'admin'),
        **kwargs
    )
    if updated_at is not None:
        guide.updated_at = updated_at
    return guide


def make_progress(user_id: str, guide_id: str,
                  started_at: datetime = BASE_TIME,
                  duration_minutes: Optional[float] = None,
                  last_accessed_at: Optional[datetime] = None) -> Progress:
    """构造测试进度，duration_minutes 不为空时为已完成记录"""
    completed_at = None
    if duration_minutes is not None:
        completed_at = started_at + timedelta(minutes=duration_minutes)
    return Progress(
        user_id=user_id,
        guide_id=guide_id,
        current_step_order=1,
        started_at=started_at,
        last_accessed_at=last_accessed_at or completed_at or started_at,
        completed_at=completed_at,
    )


@pytest.fixture
def sample_guide():
    """三个步骤、无图片的示例指南"""
    return make_guide()


@pytest.fixture
def sample_category():
    return Category(name="Network", description="Network devices")
