#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
进度跟踪服务

在 ProgressRepository 之上做业务校验：
- 指南必须存在且有步骤才能开始
- 步骤序号必须在 1 ~ 步骤数 之间
- 备注不超过 MAX_NOTES_LENGTH
"""

import logging
from typing import List, Optional

from guidestore.exceptions import DuplicateKeyError, ProgressError
from guidestore.models.entities import MAX_NOTES_LENGTH, Guide, Progress, ProgressStatistics
from guidestore.storage.database.guide_repository import GuideRepository
from guidestore.storage.database.progress_repository import ProgressRepository
from guidestore.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class ProgressTrackingService:
    """进度跟踪业务服务"""

    def __init__(self, progress_repository: ProgressRepository, guide_repository: GuideRepository):
        if progress_repository is None or guide_repository is None:
            raise ValueError("progress_repository 和 guide_repository 不能为空")
        self.progress_repository = progress_repository
        self.guide_repository = guide_repository

    def _require_progress(self, progress_id: str) -> Progress:
        progress = self.progress_repository.get_by_id(progress_id)
        if progress is None:
            raise ProgressError(f"进度记录不存在: {progress_id}")
        return progress

    def _require_guide(self, guide_id: str) -> Guide:
        guide = self.guide_repository.get_by_id(guide_id)
        if guide is None:
            raise ProgressError(f"指南不存在: {guide_id}")
        return guide

    @staticmethod
    def _validate_step_order(guide: Guide, step_order: int) -> None:
        if step_order < 1 or step_order > guide.step_count:
            raise ValueError(f"步骤序号 {step_order} 无效，指南共有 {guide.step_count} 步")

    def start_guide(self, guide_id: str, user_id: str) -> Progress:
        """
        开始一个指南

        Returns:
            新建的进度记录，当前步骤为 1

        Raises:
            ProgressError: 指南不存在、没有步骤，或该用户已有进度记录
        """
        guide = self._require_guide(guide_id)

        if self.progress_repository.get_by_user_and_guide(user_id, guide_id) is not None:
            raise ProgressError(f"用户 {user_id} 在指南 {guide_id} 上已有进度记录")

        if not guide.has_steps:
            raise ProgressError(f"指南没有步骤: {guide.title}")

        now = utcnow()
        progress = Progress(
            guide_id=guide_id,
            user_id=user_id,
            current_step_order=1,
            started_at=now,
            last_accessed_at=now,
        )

        try:
            self.progress_repository.insert(progress)
        except DuplicateKeyError as e:
            # 检查和插入之间被另一个调用抢先
            raise ProgressError(f"用户 {user_id} 在指南 {guide_id} 上已有进度记录") from e

        logger.info(f"开始跟踪进度: user={user_id}, guide={guide_id}")
        return progress

    def get_progress(self, guide_id: str, user_id: str) -> Optional[Progress]:
        return self.progress_repository.get_by_user_and_guide(user_id, guide_id)

    def get_active_progress(self, user_id: str) -> List[Progress]:
        return self.progress_repository.get_active_by_user(user_id)

    def get_completed_progress(self, user_id: str) -> List[Progress]:
        return self.progress_repository.get_completed_by_user(user_id)

    def complete_step(
        self,
        progress_id: str,
        step_order: int,
        completed: bool,
        notes: Optional[str] = None
    ) -> bool:
        """
        标记步骤完成/未完成，可同时更新备注

        Args:
            progress_id: 进度记录 ID
            step_order: 步骤序号（1 开始）
            completed: True 标记完成，False 取消
            notes: 备注，为空或全空白时不修改

        Raises:
            ProgressError: 进度记录或指南不存在
            ValueError: 步骤序号越界或备注过长
        """
        progress = self._require_progress(progress_id)
        guide = self._require_guide(progress.guide_id)
        self._validate_step_order(guide, step_order)

        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValueError(f"备注不能超过 {MAX_NOTES_LENGTH} 个字符")

        result = self.progress_repository.update_step_completion(progress_id, step_order, completed)

        if notes is not None and notes.strip():
            progress = self.progress_repository.get_by_id(progress_id)
            if progress is not None:
                progress.notes = notes
                self.progress_repository.update(progress)

        if result:
            logger.info(f"步骤 {step_order} 完成状态更新为 {completed}: progress={progress_id}")
        return result

    def update_current_step(self, progress_id: str, step_order: int) -> bool:
        """
        更新当前步骤

        Raises:
            ProgressError: 进度记录或指南不存在
            ValueError: 步骤序号越界
        """
        progress = self._require_progress(progress_id)
        guide = self._require_guide(progress.guide_id)
        self._validate_step_order(guide, step_order)

        result = self.progress_repository.update_current_step(progress_id, step_order)
        if result:
            logger.info(f"当前步骤更新为 {step_order}: progress={progress_id}")
        return result

    def mark_guide_complete(self, progress_id: str) -> bool:
        """
        标记指南完成

        Returns:
            已经完成过时返回 False
        """
        progress = self._require_progress(progress_id)

        if progress.is_completed:
            logger.warning(f"进度已经是完成状态: {progress_id}")
            return False

        result = self.progress_repository.mark_guide_complete(progress_id)
        if result:
            logger.info(f"指南已完成: progress={progress_id}")
        return result

    def get_statistics(self, user_id: str) -> ProgressStatistics:
        return self.progress_repository.get_statistics(user_id)

    @staticmethod
    def calculate_estimated_time_remaining(progress: Progress, guide: Guide) -> Optional[int]:
        """
        按已完成步骤比例估算剩余分钟数（向上取整）

        Returns:
            指南没有预计时长或没有步骤时返回 None
        """
        if progress is None or guide is None:
            raise ValueError("progress 和 guide 不能为空")

        if guide.estimated_minutes <= 0 or not guide.has_steps:
            return None

        total_steps = guide.step_count
        completed_steps = len(progress.completed_step_orders)

        if completed_steps == 0:
            return guide.estimated_minutes
        if completed_steps >= total_steps:
            return 0

        # 整数运算向上取整
        remaining = guide.estimated_minutes * (total_steps - completed_steps)
        return -(-remaining // total_steps)

    def update_active_time(self, progress_id: str, additional_seconds: int) -> bool:
        """
        累加活跃时间

        Raises:
            ValueError: additional_seconds 为负数
            ProgressError: 进度记录不存在
        """
        if additional_seconds < 0:
            raise ValueError("additional_seconds 不能为负数")

        progress = self._require_progress(progress_id)
        progress.total_active_time_seconds += additional_seconds
        progress.last_accessed_at = utcnow()

        result = self.progress_repository.update(progress)
        if result:
            logger.debug(
                f"活跃时间 +{additional_seconds}s (共 {progress.total_active_time_seconds}s): "
                f"progress={progress_id}"
            )
        return result
