#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
时间格式化工具

文档中的时间统一以 UTC 存储，格式固定为 "YYYY-MM-DDTHH:MM:SS.ffffffZ"，
保证字符串字典序与时间先后一致，索引上的排序/范围查询可以直接使用。
"""

from datetime import datetime, timezone
from typing import Optional, Union

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    将 datetime 规范为带时区的 UTC 时间

    不带时区的时间按 UTC 解释。
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """
    将 datetime 转换为存储格式

    Examples:
        >>> format_timestamp(datetime(2025, 12, 26, 10, 59, 4, tzinfo=timezone.utc))
        '2025-12-26T10:59:04.000000Z'
        >>> format_timestamp(None)
    """
    if dt is None:
        return None
    return ensure_utc(dt).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """
    解析存储格式的时间字符串

    兼容不带微秒的 ISO 8601 字符串和带时区偏移的写法，空值返回 None。
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    value = value.strip()
    if not value:
        return None

    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    # fromisoformat 不认识结尾的 Z
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(value))
