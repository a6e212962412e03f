#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Progress Repository - 用户进度

每个 (user_id, guide_id) 至多一条记录，由复合唯一索引保证。
"""

from typing import List, Optional

from guidestore.models.entities import Progress, ProgressStatistics
from guidestore.storage.database.base import PROGRESS, json_field
from guidestore.storage.database.collection import DocumentRepository
from guidestore.utils.time_utils import utcnow

USER_ID = json_field('user_id')
GUIDE_ID = json_field('guide_id')
COMPLETED_AT = json_field('completed_at')
LAST_ACCESSED_AT = json_field('last_accessed_at')


class ProgressRepository(DocumentRepository[Progress]):
    """进度跟踪"""

    collection_name = PROGRESS
    entity_type = Progress

    def get_by_user_and_guide(self, user_id: str, guide_id: str) -> Optional[Progress]:
        """
        获取用户在某个指南上的进度

        Returns:
            进度记录，不存在返回 None
        """
        results = self.collection.query(
            f'{USER_ID} = ? AND {GUIDE_ID} = ?',
            (user_id, guide_id),
            limit=1
        )
        return results[0] if results else None

    def get_active_by_user(self, user_id: str) -> List[Progress]:
        """进行中的记录，最近访问的在前"""
        return self.collection.query(
            f'{USER_ID} = ? AND {COMPLETED_AT} IS NULL',
            (user_id,),
            order_by=f'{LAST_ACCESSED_AT} DESC'
        )

    def get_completed_by_user(self, user_id: str) -> List[Progress]:
        """已完成的记录，最近完成的在前"""
        return self.collection.query(
            f'{USER_ID} = ? AND {COMPLETED_AT} IS NOT NULL',
            (user_id,),
            order_by=f'{COMPLETED_AT} DESC'
        )

    def get_all_progress_for_guide(self, guide_id: str) -> List[Progress]:
        """某个指南上所有用户的进度（管理员查看用）"""
        return self.collection.query(f'{GUIDE_ID} = ?', (guide_id,))

    def get_by_user(self, user_id: str) -> List[Progress]:
        """用户的全部进度记录"""
        return self.collection.query(f'{USER_ID} = ?', (user_id,))

    def get_statistics(self, user_id: str) -> ProgressStatistics:
        """
        计算用户的进度统计

        - average_completion_time_minutes: 已完成记录 (completed_at - started_at) 的平均分钟数
        - completion_rate: 已完成 / 已开始 * 100

        两者都保留两位小数，分母为 0 时为 0。
        """
        records = self.get_by_user(user_id)
        completed = [p for p in records if p.completed_at is not None]

        statistics = ProgressStatistics(
            total_started=len(records),
            total_completed=len(completed),
            currently_in_progress=len(records) - len(completed)
        )

        if completed:
            total_minutes = sum(
                (p.completed_at - p.started_at).total_seconds() / 60 for p in completed
            )
            statistics.average_completion_time_minutes = round(total_minutes / len(completed), 2)

        if statistics.total_started > 0:
            statistics.completion_rate = round(
                statistics.total_completed / statistics.total_started * 100, 2
            )

        return statistics

    def update_step_completion(self, progress_id: str, step_order: int, completed: bool) -> bool:
        """
        标记某一步完成/未完成

        重复添加或移除不存在的步骤都不会出错，last_accessed_at 总会刷新。

        Returns:
            进度记录不存在返回 False
        """
        progress = self.get_by_id(progress_id)
        if progress is None:
            return False

        if completed:
            progress.completed_step_orders.add(step_order)
        else:
            progress.completed_step_orders.discard(step_order)

        progress.last_accessed_at = utcnow()
        return self.update(progress)

    def update_current_step(self, progress_id: str, step_order: int) -> bool:
        """更新当前所在步骤"""
        progress = self.get_by_id(progress_id)
        if progress is None:
            return False

        progress.current_step_order = step_order
        progress.last_accessed_at = utcnow()
        return self.update(progress)

    def mark_guide_complete(self, progress_id: str) -> bool:
        """
        标记指南已完成

        重复调用只会重新写入两个时间戳。completed_at 一旦设置不会自动清除。
        """
        progress = self.get_by_id(progress_id)
        if progress is None:
            return False

        now = utcnow()
        progress.completed_at = now
        progress.last_accessed_at = now
        return self.update(progress)
