#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
User Repository - 用户与授权记录
"""

from typing import List, Optional, Union

from guidestore.models.entities import User, UserRole
from guidestore.storage.database.base import USERS, json_field
from guidestore.storage.database.collection import DocumentRepository
from guidestore.utils.time_utils import utcnow


class UserRepository(DocumentRepository[User]):
    """用户管理"""

    collection_name = USERS
    entity_type = User

    def get_current_user(self) -> Optional[User]:
        """
        当前用户

        每个安装只有一个用户，直接取集合里的第一条记录。
        """
        results = self.collection.query(order_by='rowid', limit=1)
        return results[0] if results else None

    def update_last_login(self, user: User) -> bool:
        """把 last_login 设为当前时间并保存"""
        user.last_login = utcnow()
        return self.update(user)

    def get_by_role(self, role: Union[UserRole, str]) -> List[User]:
        """按角色查询"""
        return self.collection.query(f"{json_field('role')} = ?", (UserRole(role).value,))
