#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
存储层模块
"""

# database 需要先于 blob_storage 导入（两者互相引用）
from guidestore.storage.database.data_layer import GuideDataLayer
from guidestore.storage.blob_storage import (
    BlobStore,
    DatabaseBlobStore,
    FileBlobStore,
    ImageStorage,
)

__all__ = [
    'GuideDataLayer',
    'BlobStore',
    'DatabaseBlobStore',
    'FileBlobStore',
    'ImageStorage',
]
