#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
异常定义

约定：
- 查询不到数据时仓储返回 None / 空列表，不抛异常
- 更新/删除不存在的记录返回 False
- 下面的异常只用于真正的错误
"""


class GuideStoreError(Exception):
    """所有 guidestore 异常的基类"""


class DatabaseOpenError(GuideStoreError):
    """数据库文件无法打开（被锁定、损坏、无权限等），不做自动修复或重试"""

    def __init__(self, db_path: str, reason: Exception):
        self.db_path = db_path
        self.reason = reason
        super().__init__(f"无法打开数据库 {db_path}: {reason}")


class DuplicateKeyError(GuideStoreError):
    """
    唯一索引冲突

    调用方应先用 exists 检查，触发此异常说明调用方存在编程错误。
    """

    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"[{collection}] 唯一约束冲突: {message}")


class ProgressError(GuideStoreError):
    """进度状态变更不合法（指南不存在、重复开始等）"""


class ImageValidationError(GuideStoreError, ValueError):
    """图片校验失败"""
