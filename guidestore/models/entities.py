#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
实体数据模型

所有实体都是 dataclass，通过 to_dict / from_dict 与 JSON 文档互转。
文档键名使用 snake_case，时间字段按 time_utils 的存储格式保存。
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from guidestore.utils.time_utils import format_timestamp, parse_timestamp, utcnow


DEFAULT_ICON_GLYPH = '\uE8F1'  # Segoe Fluent 文档图标
DEFAULT_CATEGORY_COLOR = '#0078D4'
MAX_NOTES_LENGTH = 5000


def new_id() -> str:
    """生成新的文档 ID"""
    return uuid.uuid4().hex


class UserRole(str, Enum):
    """用户角色"""
    ADMIN = 'Admin'            # 可创建、编辑指南
    TECHNICIAN = 'Technician'  # 只读浏览 + 进度跟踪

    @classmethod
    def values(cls) -> List[str]:
        """返回所有枚举值"""
        return [e.value for e in cls]

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """检查值是否有效"""
        return value in cls.values()


def category_name_key(name: str) -> str:
    """分类名的比较键，唯一索引和按名称查询都使用它"""
    return (name or '').casefold()


@dataclass
class Category:
    """指南分类，名称大小写不敏感唯一"""
    name: str = ''
    description: str = ''
    icon_glyph: str = DEFAULT_ICON_GLYPH
    color: str = DEFAULT_CATEGORY_COLOR
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'name_key': category_name_key(self.name),
            'description': self.description,
            'icon_glyph': self.icon_glyph,
            'color': self.color,
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            description=data.get('description', ''),
            icon_glyph=data.get('icon_glyph', DEFAULT_ICON_GLYPH),
            color=data.get('color', DEFAULT_CATEGORY_COLOR),
            created_at=parse_timestamp(data.get('created_at')) or utcnow(),
            updated_at=parse_timestamp(data.get('updated_at')) or utcnow(),
        )


@dataclass
class Step:
    """
    指南中的单个步骤

    步骤作为子文档内嵌在 Guide 中，没有独立的集合。
    order 从 1 开始，唯一性和连续性由调用方维护。
    """
    order: int = 0
    title: str = ''
    content: str = ''  # RTF 或纯文本，存储层不解析
    image_ids: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'order': self.order,
            'title': self.title,
            'content': self.content,
            'image_ids': list(self.image_ids),
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Step':
        return cls(
            id=data.get('id') or str(uuid.uuid4()),
            order=int(data.get('order', 0)),
            title=data.get('title', ''),
            content=data.get('content', ''),
            image_ids=list(data.get('image_ids') or []),
            created_at=parse_timestamp(data.get('created_at')) or utcnow(),
            updated_at=parse_timestamp(data.get('updated_at')) or utcnow(),
        )


@dataclass
class Guide:
    """
    安装指南

    category 是自由文本（分类名），不是外键，存储层不校验它是否存在于 categories。
    """
    title: str = ''
    description: str = ''
    category: str = ''
    estimated_minutes: int = 0
    steps: List[Step] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    created_by: str = ''
    id: str = ''

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def has_steps(self) -> bool:
        return self.step_count > 0

    def image_ids(self) -> List[str]:
        """按步骤顺序列出所有引用的图片 ID"""
        return [image_id for step in self.steps for image_id in step.image_ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'estimated_minutes': self.estimated_minutes,
            'steps': [step.to_dict() for step in self.steps],
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
            'created_by': self.created_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Guide':
        return cls(
            id=data.get('id', ''),
            title=data.get('title', ''),
            description=data.get('description', ''),
            category=data.get('category', ''),
            estimated_minutes=int(data.get('estimated_minutes', 0)),
            steps=[Step.from_dict(s) for s in data.get('steps') or []],
            created_at=parse_timestamp(data.get('created_at')) or utcnow(),
            updated_at=parse_timestamp(data.get('updated_at')) or utcnow(),
            created_by=data.get('created_by', ''),
        )


@dataclass
class Progress:
    """
    用户在某个指南上的进度

    状态机：无记录(未开始) -> completed_at 为空(进行中) -> completed_at 已设置(已完成)。
    completed_step_orders 允许非线性完成（可以先完成第 3 步再完成第 2 步）。
    每个 (user_id, guide_id) 至多一条记录。
    """
    guide_id: str = ''
    user_id: str = ''
    current_step_order: int = 0
    completed_step_orders: Set[int] = field(default_factory=set)
    started_at: datetime = field(default_factory=utcnow)
    last_accessed_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    notes: str = ''
    total_active_time_seconds: int = 0
    id: str = ''

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'guide_id': self.guide_id,
            'user_id': self.user_id,
            'current_step_order': self.current_step_order,
            'completed_step_orders': sorted(self.completed_step_orders),
            'started_at': format_timestamp(self.started_at),
            'last_accessed_at': format_timestamp(self.last_accessed_at),
            'completed_at': format_timestamp(self.completed_at),
            'notes': self.notes,
            'total_active_time_seconds': self.total_active_time_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Progress':
        return cls(
            id=data.get('id', ''),
            guide_id=data.get('guide_id', ''),
            user_id=data.get('user_id', ''),
            current_step_order=int(data.get('current_step_order', 0)),
            completed_step_orders=set(data.get('completed_step_orders') or []),
            started_at=parse_timestamp(data.get('started_at')) or utcnow(),
            last_accessed_at=parse_timestamp(data.get('last_accessed_at')) or utcnow(),
            completed_at=parse_timestamp(data.get('completed_at')),
            notes=data.get('notes', ''),
            total_active_time_seconds=int(data.get('total_active_time_seconds', 0)),
        )


@dataclass
class User:
    """本机用户及其授权信息（每个安装只有一个用户）"""
    product_key: str = ''  # 由授权组件签发，原样保存
    role: UserRole = UserRole.TECHNICIAN
    activated_at: datetime = field(default_factory=utcnow)
    last_login: datetime = field(default_factory=utcnow)
    id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'product_key': self.product_key,
            'role': UserRole(self.role).value,
            'activated_at': format_timestamp(self.activated_at),
            'last_login': format_timestamp(self.last_login),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data.get('id', ''),
            product_key=data.get('product_key', ''),
            role=UserRole(data.get('role', UserRole.TECHNICIAN.value)),
            activated_at=parse_timestamp(data.get('activated_at')) or utcnow(),
            last_login=parse_timestamp(data.get('last_login')) or utcnow(),
        )


@dataclass
class AppSetting:
    """键值对形式的应用设置，value 通常是调用方编码好的 JSON"""
    key: str = ''
    value: str = ''
    updated_at: datetime = field(default_factory=utcnow)
    id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'key': self.key,
            'value': self.value,
            'updated_at': format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSetting':
        return cls(
            id=data.get('id', ''),
            key=data.get('key', ''),
            value=data.get('value', ''),
            updated_at=parse_timestamp(data.get('updated_at')) or utcnow(),
        )


@dataclass
class ProgressStatistics:
    """用户的进度统计"""
    total_started: int = 0
    total_completed: int = 0
    currently_in_progress: int = 0
    average_completion_time_minutes: float = 0.0  # 没有已完成记录时为 0
    completion_rate: float = 0.0                   # 0.0 ~ 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_started': self.total_started,
            'total_completed': self.total_completed,
            'currently_in_progress': self.currently_in_progress,
            'average_completion_time_minutes': self.average_completion_time_minutes,
            'completion_rate': self.completion_rate,
        }
