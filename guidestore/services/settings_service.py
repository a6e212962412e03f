#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
应用设置服务

AppSettings 以 JSON 形式保存在 settings 集合的 AppSettings 键下，
首次读取后缓存在服务实例上。
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple

from guidestore.storage.database.settings_repository import SettingsRepository

logger = logging.getLogger(__name__)

SETTINGS_KEY = 'AppSettings'


@dataclass
class AppSettings:
    """界面相关的应用设置"""
    theme: str = 'System'      # Light / Dark / System
    window_width: float = 1200
    window_height: float = 800
    window_x: float = -1       # -1 表示屏幕居中
    window_y: float = -1
    is_maximized: bool = False
    last_opened_guide_id: Optional[str] = None
    show_welcome_screen: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
        """未知键忽略，缺失键使用默认值"""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class SettingsService:
    """类型化的设置读写"""

    def __init__(self, settings_repository: SettingsRepository):
        if settings_repository is None:
            raise ValueError("settings_repository 不能为空")
        self.settings_repository = settings_repository
        self._cached_settings: Optional[AppSettings] = None

    def load_settings(self) -> AppSettings:
        """
        读取应用设置

        不存在或内容损坏时写回默认设置。
        """
        if self._cached_settings is not None:
            return self._cached_settings

        raw = self.settings_repository.get_value(SETTINGS_KEY)
        if raw:
            try:
                data = json.loads(raw)
                if isinstance(data, dict):
                    self._cached_settings = AppSettings.from_dict(data)
                    return self._cached_settings
                logger.warning(f"应用设置格式不正确，已重置为默认值: {raw[:100]}")
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(f"应用设置解析失败，已重置为默认值: {e}")

        settings = AppSettings()
        self.save_settings(settings)
        return settings

    def save_settings(self, settings: AppSettings) -> None:
        self.settings_repository.set_value(
            SETTINGS_KEY,
            json.dumps(settings.to_dict(), ensure_ascii=False, indent=2)
        )
        self._cached_settings = settings

    def get_theme(self) -> str:
        return self.load_settings().theme

    def set_theme(self, theme: str) -> None:
        settings = self.load_settings()
        settings.theme = theme
        self.save_settings(settings)

    def get_window_state(self) -> Tuple[float, float, float, float, bool]:
        """返回 (width, height, x, y, is_maximized)"""
        s = self.load_settings()
        return s.window_width, s.window_height, s.window_x, s.window_y, s.is_maximized

    def save_window_state(
        self,
        width: float,
        height: float,
        x: float,
        y: float,
        is_maximized: bool
    ) -> None:
        settings = self.load_settings()
        settings.window_width = width
        settings.window_height = height
        settings.window_x = x
        settings.window_y = y
        settings.is_maximized = is_maximized
        self.save_settings(settings)

    def get_value(self, key: str, default: Any = None) -> Any:
        """
        读取任意 JSON 值

        Returns:
            不存在或无法解析时返回 default
        """
        raw = self.settings_repository.get_value(key)
        if not raw:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"设置 {key} 不是合法 JSON，返回默认值")
            return default

    def set_value(self, key: str, value: Any) -> None:
        """以 JSON 形式写入任意值"""
        self.settings_repository.set_value(key, json.dumps(value, ensure_ascii=False))
        if key == SETTINGS_KEY:
            self._cached_settings = None
