#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
数据模型模块
"""

from guidestore.models.entities import (
    AppSetting,
    Category,
    Guide,
    Progress,
    ProgressStatistics,
    Step,
    User,
    UserRole,
)
from guidestore.models.export import (
    BackupInfo,
    GuideExport,
    GuideExportData,
    GuidesExport,
    ImportResult,
    StepExportData,
)

__all__ = [
    # 实体
    'AppSetting',
    'Category',
    'Guide',
    'Progress',
    'ProgressStatistics',
    'Step',
    'User',
    'UserRole',
    # 导入导出
    'BackupInfo',
    'GuideExport',
    'GuideExportData',
    'GuidesExport',
    'ImportResult',
    'StepExportData',
]
