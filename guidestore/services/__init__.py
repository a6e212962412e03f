#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
业务服务模块
"""

from guidestore.services.backup_service import BackupService
from guidestore.services.progress_tracking import ProgressTrackingService
from guidestore.services.settings_service import AppSettings, SettingsService

__all__ = [
    'AppSettings',
    'BackupService',
    'ProgressTrackingService',
    'SettingsService',
]
