#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
导入导出相关的 Pydantic 模型

只定义数据形状，读写 JSON / ZIP 文件由上层负责。
序列化时使用 camelCase 别名: model_dump(by_alias=True)。
"""

import base64
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from guidestore.models.entities import Guide, Step
from guidestore.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = '1.0'

ImageLoader = Callable[[str], Optional[bytes]]


class ExportModel(BaseModel):
    """导出模型基类"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


class StepExportData(ExportModel):
    """
    步骤导出数据

    images_base64 / image_file_names 的键都是原图片 ID。
    """
    id: Optional[str] = Field(None, description="原步骤 ID，仅供参考")
    order: int = 0
    title: str = ''
    content: str = ''
    images_base64: Optional[Dict[str, str]] = None
    image_file_names: Optional[Dict[str, str]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def original_image_ids(self) -> List[str]:
        """导出时引用的图片 ID（保持导出时的顺序）"""
        ids = list(self.images_base64 or {})
        for image_id in self.image_file_names or {}:
            if image_id not in ids:
                ids.append(image_id)
        return ids

    def decode_image(self, image_id: str) -> Optional[bytes]:
        """解码内嵌图片，不存在返回 None"""
        encoded = (self.images_base64 or {}).get(image_id)
        if encoded is None:
            return None
        return base64.b64decode(encoded)


class GuideExportData(ExportModel):
    """指南导出数据（导入时会生成新的 ID）"""
    id: Optional[str] = Field(None, description="原指南 ID，仅供参考")
    title: str = ''
    description: str = ''
    category: str = ''
    estimated_minutes: int = 0
    steps: List[StepExportData] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: str = ''

    @classmethod
    def from_guide(cls, guide: Guide, image_loader: Optional[ImageLoader] = None) -> 'GuideExportData':
        """
        从 Guide 生成导出数据

        Args:
            guide: 指南
            image_loader: 按图片 ID 读取图片内容，传入时图片以 Base64 内嵌；
                          读不到的图片记录警告后跳过

        Returns:
            导出数据
        """
        steps = []
        for step in guide.steps:
            step_data = StepExportData(
                id=step.id,
                order=step.order,
                title=step.title,
                content=step.content,
                created_at=step.created_at,
                updated_at=step.updated_at,
            )

            if image_loader is not None and step.image_ids:
                step_data.images_base64 = {}
                for image_id in step.image_ids:
                    data = image_loader(image_id)
                    if data is None:
                        logger.warning(f"图片不存在，跳过: {image_id} (步骤 '{step.title}')")
                        continue
                    step_data.images_base64[image_id] = base64.b64encode(data).decode('ascii')

            steps.append(step_data)

        return cls(
            id=guide.id or None,
            title=guide.title,
            description=guide.description,
            category=guide.category,
            estimated_minutes=guide.estimated_minutes,
            steps=steps,
            created_at=guide.created_at,
            updated_at=guide.updated_at,
            created_by=guide.created_by,
        )

    def to_guide(
        self,
        created_by: str = 'Imported',
        image_id_map: Optional[Dict[str, str]] = None
    ) -> Guide:
        """
        转换为新的 Guide

        指南和步骤都使用新的 ID 和当前时间，不复用导出数据里的 ID。
        id 留空，由插入时分配。

        Args:
            created_by: 新指南的创建者
            image_id_map: 原图片 ID -> 新图片 ID，只有出现在映射中的图片会被引用
        """
        image_id_map = image_id_map or {}
        now = utcnow()

        steps = [
            Step(
                order=step_data.order,
                title=step_data.title,
                content=step_data.content,
                image_ids=[
                    image_id_map[old_id]
                    for old_id in step_data.original_image_ids()
                    if old_id in image_id_map
                ],
                created_at=now,
                updated_at=now,
            )
            for step_data in self.steps
        ]

        return Guide(
            title=self.title,
            description=self.description,
            category=self.category,
            estimated_minutes=self.estimated_minutes,
            steps=steps,
            created_at=now,
            updated_at=now,
            created_by=created_by,
        )


class GuideExport(ExportModel):
    """单个指南的导出文件"""
    version: str = EXPORT_FORMAT_VERSION
    export_date: datetime = Field(default_factory=utcnow)
    guide: Optional[GuideExportData] = None


class GuidesExport(ExportModel):
    """多个指南的导出文件"""
    version: str = EXPORT_FORMAT_VERSION
    export_date: datetime = Field(default_factory=utcnow)
    guide_count: int = 0
    guides: List[GuideExportData] = Field(default_factory=list)

    @classmethod
    def from_guides(cls, guides: List[Guide], image_loader: Optional[ImageLoader] = None) -> 'GuidesExport':
        items = [GuideExportData.from_guide(g, image_loader) for g in guides]
        return cls(guide_count=len(items), guides=items)


class ImportResult(ExportModel):
    """导入结果"""
    success: bool = False
    imported_guide_ids: List[str] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)
    warning_messages: List[str] = Field(default_factory=list)
    duplicates_skipped: int = 0
    guides_imported: int = 0
    images_imported: int = 0

    @property
    def has_errors(self) -> bool:
        return len(self.error_messages) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warning_messages) > 0

    @classmethod
    def create_success(cls, guide_ids: List[str], images_imported: int = 0) -> 'ImportResult':
        return cls(
            success=True,
            imported_guide_ids=list(guide_ids),
            guides_imported=len(guide_ids),
            images_imported=images_imported,
        )

    @classmethod
    def create_failure(cls, error_message: str) -> 'ImportResult':
        return cls(success=False, error_messages=[error_message])

    @classmethod
    def create_partial_success(
        cls,
        guide_ids: List[str],
        errors: List[str],
        warnings: List[str]
    ) -> 'ImportResult':
        """部分成功: 至少导入一个指南即视为成功"""
        return cls(
            success=len(guide_ids) > 0,
            imported_guide_ids=list(guide_ids),
            guides_imported=len(guide_ids),
            error_messages=list(errors),
            warning_messages=list(warnings),
        )

    def summary_message(self) -> str:
        """给用户看的摘要"""
        if not self.success and not self.imported_guide_ids:
            return f"Import failed: {', '.join(self.error_messages)}"

        parts = []
        if self.guides_imported > 0:
            parts.append(f"{self.guides_imported} guide(s) imported successfully")
        if self.images_imported > 0:
            parts.append(f"{self.images_imported} image(s) imported")
        if self.duplicates_skipped > 0:
            parts.append(f"{self.duplicates_skipped} duplicate(s) skipped")
        if self.has_warnings:
            parts.append(f"{len(self.warning_messages)} warning(s)")
        if self.has_errors:
            parts.append(f"{len(self.error_messages)} error(s)")

        return ', '.join(parts)


class BackupInfo(ExportModel):
    """备份元数据，保存在备份包的 metadata.json 中"""
    backup_date: datetime = Field(default_factory=utcnow)
    app_version: str = ''
    guide_count: int = 0
    user_count: int = 0
    progress_count: int = 0
    category_count: int = 0
    database_size: int = 0
    is_valid: bool = False

    def summary(self) -> str:
        backup_date = ensure_utc(self.backup_date)
        return (
            f"Backup from {backup_date:%Y-%m-%d %H:%M} - "
            f"{self.guide_count} guides, {self.user_count} users, "
            f"{self.progress_count} progress records - "
            f"{self.database_size / 1024:,.0f} KB"
        )
