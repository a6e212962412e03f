#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
业务服务测试

测试覆盖：
- ProgressTrackingService: 开始、步骤完成、完成标记、剩余时间、活跃时间
- SettingsService: 默认值、缓存、损坏恢复、任意 JSON 值
"""

import logging

import pytest

from guidestore.exceptions import ProgressError
from guidestore.models.entities import MAX_NOTES_LENGTH, Progress
from guidestore.services.progress_tracking import ProgressTrackingService
from guidestore.services.settings_service import SETTINGS_KEY, AppSettings, SettingsService

from conftest import make_guide


@pytest.fixture
def tracking(data_layer):
    return ProgressTrackingService(data_layer.progress, data_layer.guides)


@pytest.fixture
def guide(guide_repo):
    g = make_guide(step_count=4, estimated_minutes=40)
    guide_repo.insert(g)
    return g


class TestStartGuide:
    """开始指南"""

    def test_start_guide(self, tracking, guide):
        progress = tracking.start_guide(guide.id, "user-1")

        assert progress.id
        assert progress.current_step_order == 1
        assert progress.completed_at is None
        assert tracking.get_progress(guide.id, "user-1").id == progress.id

    def test_start_missing_guide(self, tracking):
        with pytest.raises(ProgressError):
            tracking.start_guide("missing", "user-1")

    def test_start_twice(self, tracking, guide):
        tracking.start_guide(guide.id, "user-1")
        with pytest.raises(ProgressError):
            tracking.start_guide(guide.id, "user-1")

    def test_start_guide_without_steps(self, tracking, guide_repo):
        empty = make_guide(step_count=0)
        guide_repo.insert(empty)
        with pytest.raises(ProgressError):
            tracking.start_guide(empty.id, "user-1")

    def test_requires_repositories(self):
        with pytest.raises(ValueError):
            ProgressTrackingService(None, None)


class TestStepTracking:
    """步骤与完成"""

    @pytest.fixture
    def progress(self, tracking, guide):
        return tracking.start_guide(guide.id, "user-1")

    def test_complete_step_with_notes(self, tracking, progress, progress_repo):
        assert tracking.complete_step(progress.id, 2, True, notes="replaced fan") is True

        loaded = progress_repo.get_by_id(progress.id)
        assert loaded.completed_step_orders == {2}
        assert loaded.notes == "replaced fan"

    def test_blank_notes_keep_existing(self, tracking, progress, progress_repo):
        tracking.complete_step(progress.id, 1, True, notes="first")
        tracking.complete_step(progress.id, 2, True, notes="   ")

        assert progress_repo.get_by_id(progress.id).notes == "first"

    def test_step_order_out_of_range(self, tracking, progress):
        with pytest.raises(ValueError):
            tracking.complete_step(progress.id, 0, True)
        with pytest.raises(ValueError):
            tracking.complete_step(progress.id, 5, True)
        with pytest.raises(ValueError):
            tracking.update_current_step(progress.id, 5)

    def test_notes_too_long(self, tracking, progress):
        with pytest.raises(ValueError):
            tracking.complete_step(progress.id, 1, True, notes="x" * (MAX_NOTES_LENGTH + 1))

    def test_missing_progress(self, tracking):
        with pytest.raises(ProgressError):
            tracking.complete_step("missing", 1, True)
        with pytest.raises(ProgressError):
            tracking.mark_guide_complete("missing")

    def test_update_current_step(self, tracking, progress, progress_repo):
        assert tracking.update_current_step(progress.id, 3) is True
        assert progress_repo.get_by_id(progress.id).current_step_order == 3

    def test_mark_complete_once(self, tracking, progress, caplog):
        assert tracking.mark_guide_complete(progress.id) is True

        with caplog.at_level(logging.WARNING):
            assert tracking.mark_guide_complete(progress.id) is False
        assert any(r.levelno == logging.WARNING for r in caplog.records)

        assert tracking.get_active_progress("user-1") == []
        assert len(tracking.get_completed_progress("user-1")) == 1
        assert tracking.get_statistics("user-1").completion_rate == 100.0

    def test_update_active_time(self, tracking, progress, progress_repo):
        assert tracking.update_active_time(progress.id, 30) is True
        assert tracking.update_active_time(progress.id, 45) is True
        assert progress_repo.get_by_id(progress.id).total_active_time_seconds == 75

        with pytest.raises(ValueError):
            tracking.update_active_time(progress.id, -1)


class TestEstimatedTime:
    """剩余时间估算"""

    def test_estimates(self):
        guide = make_guide(step_count=3, estimated_minutes=30)
        progress = Progress()

        assert ProgressTrackingService.calculate_estimated_time_remaining(progress, guide) == 30

        progress.completed_step_orders = {1}
        assert ProgressTrackingService.calculate_estimated_time_remaining(progress, guide) == 20

        progress.completed_step_orders = {1, 2, 3}
        assert ProgressTrackingService.calculate_estimated_time_remaining(progress, guide) == 0

    def test_rounds_up(self):
        guide = make_guide(step_count=3, estimated_minutes=10)
        progress = Progress(completed_step_orders={2})
        # 10 * 2/3 = 6.67
        assert ProgressTrackingService.calculate_estimated_time_remaining(progress, guide) == 7

    def test_unknown(self):
        progress = Progress()
        assert ProgressTrackingService.calculate_estimated_time_remaining(
            progress, make_guide(estimated_minutes=0)) is None
        assert ProgressTrackingService.calculate_estimated_time_remaining(
            progress, make_guide(step_count=0)) is None


class TestSettingsService:
    """类型化设置"""

    @pytest.fixture
    def service(self, settings_repo):
        return SettingsService(settings_repo)

    def test_defaults_written_back(self, service, settings_repo):
        settings = service.load_settings()

        assert settings == AppSettings()
        assert settings_repo.get_value(SETTINGS_KEY) is not None

    def test_theme(self, service, settings_repo):
        service.set_theme("Dark")
        assert service.get_theme() == "Dark"
        assert SettingsService(settings_repo).get_theme() == "Dark"

    def test_window_state(self, service, settings_repo):
        assert service.get_window_state() == (1200, 800, -1, -1, False)

        service.save_window_state(1024, 768, 10, 20, True)
        assert SettingsService(settings_repo).get_window_state() == (1024, 768, 10, 20, True)

    def test_cached_after_first_load(self, service, settings_repo):
        first = service.load_settings()
        settings_repo.set_value(SETTINGS_KEY, '{"theme": "Light"}')
        assert service.load_settings() is first

    def test_corrupt_settings_reset(self, service, settings_repo):
        settings_repo.set_value(SETTINGS_KEY, "{not json")

        assert service.load_settings() == AppSettings()
        assert '"theme": "System"' in settings_repo.get_value(SETTINGS_KEY)

    def test_unknown_keys_ignored(self, service, settings_repo):
        settings_repo.set_value(SETTINGS_KEY, '{"theme": "Dark", "legacy": 1}')
        assert service.load_settings().theme == "Dark"

    def test_typed_values(self, service, settings_repo):
        service.set_value("recent", ["g1", "g2"])
        assert service.get_value("recent") == ["g1", "g2"]
        assert service.get_value("missing", default=5) == 5

        settings_repo.set_value("raw", "not json")
        assert service.get_value("raw", default="fallback") == "fallback"
