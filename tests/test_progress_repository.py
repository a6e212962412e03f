#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
进度 Repository 测试

测试覆盖：
- (user, guide) 唯一
- 进行中 / 已完成查询及排序
- 统计计算
- 步骤完成、当前步骤、完成标记
"""

from datetime import timedelta

import pytest

from guidestore.exceptions import DuplicateKeyError
from guidestore.models.entities import Progress

from conftest import BASE_TIME, make_progress


class TestProgressUniqueness:
    """每个 (user, guide) 至多一条记录"""

    def test_second_record_for_same_pair_rejected(self, progress_repo):
        progress_repo.insert(make_progress("user-1", "guide-1"))
        with pytest.raises(DuplicateKeyError):
            progress_repo.insert(make_progress("user-1", "guide-1"))

        assert progress_repo.count() == 1

    def test_same_guide_different_users(self, progress_repo):
        progress_repo.insert(make_progress("user-1", "guide-1"))
        progress_repo.insert(make_progress("user-2", "guide-1"))
        progress_repo.insert(make_progress("user-1", "guide-2"))
        assert progress_repo.count() == 3

    def test_get_by_user_and_guide(self, progress_repo):
        record = make_progress("user-1", "guide-1")
        progress_repo.insert(record)

        assert progress_repo.get_by_user_and_guide("user-1", "guide-1").id == record.id
        assert progress_repo.get_by_user_and_guide("user-1", "guide-2") is None
        assert progress_repo.get_by_user_and_guide("user-2", "guide-1") is None


class TestProgressQueries:
    """查询"""

    def test_active_ordered_by_last_accessed(self, progress_repo):
        for i, guide_id in enumerate(["g1", "g2", "g3"]):
            progress_repo.insert(make_progress(
                "user-1", guide_id, last_accessed_at=BASE_TIME + timedelta(minutes=i)
            ))
        progress_repo.insert(make_progress("user-1", "g4", duration_minutes=5))
        progress_repo.insert(make_progress("user-2", "g1"))

        active = progress_repo.get_active_by_user("user-1")
        assert [p.guide_id for p in active] == ["g3", "g2", "g1"]
        assert all(p.completed_at is None for p in active)

    def test_completed_ordered_by_completed_at(self, progress_repo):
        progress_repo.insert(make_progress("user-1", "g1", duration_minutes=10))
        progress_repo.insert(make_progress("user-1", "g2", duration_minutes=30))
        progress_repo.insert(make_progress("user-1", "g3", duration_minutes=20))
        progress_repo.insert(make_progress("user-1", "g4"))

        completed = progress_repo.get_completed_by_user("user-1")
        assert [p.guide_id for p in completed] == ["g2", "g3", "g1"]

    def test_all_progress_for_guide(self, progress_repo):
        progress_repo.insert(make_progress("user-1", "g1"))
        progress_repo.insert(make_progress("user-2", "g1", duration_minutes=3))
        progress_repo.insert(make_progress("user-3", "g2"))

        users = sorted(p.user_id for p in progress_repo.get_all_progress_for_guide("g1"))
        assert users == ["user-1", "user-2"]


class TestProgressStatistics:
    """统计"""

    def test_statistics_empty(self, progress_repo):
        stats = progress_repo.get_statistics("nobody")

        assert stats.total_started == 0
        assert stats.total_completed == 0
        assert stats.currently_in_progress == 0
        assert stats.average_completion_time_minutes == 0
        assert stats.completion_rate == 0

    def test_statistics_mixed(self, progress_repo):
        """3 个已完成(10/20/30 分钟) + 1 个进行中"""
        for guide_id, minutes in (("g1", 10), ("g2", 20), ("g3", 30)):
            progress_repo.insert(make_progress("user-1", guide_id, duration_minutes=minutes))
        progress_repo.insert(make_progress("user-1", "g4"))
        progress_repo.insert(make_progress("user-2", "g1", duration_minutes=99))

        stats = progress_repo.get_statistics("user-1")

        assert stats.total_started == 4
        assert stats.total_completed == 3
        assert stats.currently_in_progress == 1
        assert stats.average_completion_time_minutes == 20.0
        assert stats.completion_rate == 75.0

    def test_statistics_rounding(self, progress_repo):
        progress_repo.insert(make_progress("user-1", "g1", duration_minutes=1))
        progress_repo.insert(make_progress("user-1", "g2", duration_minutes=2))
        progress_repo.insert(make_progress("user-1", "g3", duration_minutes=2))
        progress_repo.insert(make_progress("user-1", "g4"))
        progress_repo.insert(make_progress("user-1", "g5"))
        progress_repo.insert(make_progress("user-1", "g6"))

        stats = progress_repo.get_statistics("user-1")
        assert stats.average_completion_time_minutes == 1.67
        assert stats.completion_rate == 50.0


class TestProgressMutations:
    """状态变更"""

    @pytest.fixture
    def record(self, progress_repo):
        progress = make_progress("user-1", "guide-1", last_accessed_at=BASE_TIME)
        progress_repo.insert(progress)
        return progress

    def test_complete_step_twice_keeps_single_entry(self, progress_repo, record):
        assert progress_repo.update_step_completion(record.id, 2, True) is True
        assert progress_repo.update_step_completion(record.id, 2, True) is True

        loaded = progress_repo.get_by_id(record.id)
        assert loaded.completed_step_orders == {2}
        assert loaded.to_dict()['completed_step_orders'] == [2]
        assert loaded.last_accessed_at > BASE_TIME

    def test_uncomplete_absent_step_is_noop(self, progress_repo, record):
        progress_repo.update_step_completion(record.id, 1, True)

        assert progress_repo.update_step_completion(record.id, 3, False) is True
        assert progress_repo.get_by_id(record.id).completed_step_orders == {1}

    def test_uncomplete_step(self, progress_repo, record):
        progress_repo.update_step_completion(record.id, 1, True)
        progress_repo.update_step_completion(record.id, 3, True)
        progress_repo.update_step_completion(record.id, 1, False)

        assert progress_repo.get_by_id(record.id).completed_step_orders == {3}

    def test_non_linear_completion(self, progress_repo, record):
        progress_repo.update_step_completion(record.id, 3, True)
        progress_repo.update_step_completion(record.id, 1, True)

        assert progress_repo.get_by_id(record.id).to_dict()['completed_step_orders'] == [1, 3]

    def test_mutators_on_missing_record(self, progress_repo):
        assert progress_repo.update_step_completion("missing", 1, True) is False
        assert progress_repo.update_current_step("missing", 1) is False
        assert progress_repo.mark_guide_complete("missing") is False

    def test_update_current_step(self, progress_repo, record):
        assert progress_repo.update_current_step(record.id, 4) is True

        loaded = progress_repo.get_by_id(record.id)
        assert loaded.current_step_order == 4
        assert loaded.last_accessed_at > BASE_TIME

    def test_mark_guide_complete(self, progress_repo, record):
        assert progress_repo.mark_guide_complete(record.id) is True

        loaded = progress_repo.get_by_id(record.id)
        assert loaded.is_completed
        assert loaded.completed_at == loaded.last_accessed_at
        assert progress_repo.get_active_by_user("user-1") == []
        assert [p.id for p in progress_repo.get_completed_by_user("user-1")] == [record.id]

    def test_mark_guide_complete_again_restamps(self, progress_repo, record):
        progress_repo.mark_guide_complete(record.id)
        first = progress_repo.get_by_id(record.id).completed_at

        assert progress_repo.mark_guide_complete(record.id) is True
        second = progress_repo.get_by_id(record.id).completed_at
        assert second >= first

    def test_notes_and_active_time_round_trip(self, progress_repo):
        progress = Progress(user_id="u", guide_id="g", notes="checked cables",
                            total_active_time_seconds=120)
        progress_repo.insert(progress)

        loaded = progress_repo.get_by_id(progress.id)
        assert loaded.notes == "checked cables"
        assert loaded.total_active_time_seconds == 120
        assert loaded.completed_at is None
