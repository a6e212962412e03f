#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
设置与用户 Repository 测试
"""

from datetime import timedelta

from guidestore.models.entities import User, UserRole

from conftest import BASE_TIME


class TestSettingsRepository:
    """键值设置"""

    def test_set_then_get(self, settings_repo):
        settings_repo.set_value("theme", "Dark")
        assert settings_repo.get_value("theme") == "Dark"

    def test_set_twice_updates_in_place(self, settings_repo):
        settings_repo.set_value("theme", "Dark")
        first = settings_repo.get_by_key("theme")

        settings_repo.set_value("theme", "Light")
        second = settings_repo.get_by_key("theme")

        assert settings_repo.get_value("theme") == "Light"
        assert second.id == first.id
        assert settings_repo.count() == 1
        assert second.updated_at >= first.updated_at

    def test_get_missing(self, settings_repo):
        assert settings_repo.get_value("missing") is None

    def test_value_is_opaque(self, settings_repo):
        payload = '{"nested": [1, 2, {"a": null}]}'
        settings_repo.set_value("json", payload)
        assert settings_repo.get_value("json") == payload

    def test_delete_by_key(self, settings_repo):
        settings_repo.set_value("a", "1")
        settings_repo.set_value("b", "2")

        assert settings_repo.delete_by_key("a") is True
        assert settings_repo.delete_by_key("a") is False
        assert settings_repo.get_value("a") is None
        assert settings_repo.get_value("b") == "2"

    def test_list_keys(self, settings_repo):
        for key in ("zeta", "alpha", "mid"):
            settings_repo.set_value(key, "x")
        assert settings_repo.list_keys() == ["alpha", "mid", "zeta"]


class TestUserRepository:
    """用户"""

    def test_get_current_user_empty(self, user_repo):
        assert user_repo.get_current_user() is None

    def test_get_current_user_is_first_record(self, user_repo):
        first = User(product_key="FIRST", role=UserRole.ADMIN)
        user_repo.insert(first)
        user_repo.insert(User(product_key="SECOND"))

        assert user_repo.get_current_user().id == first.id

    def test_update_last_login(self, user_repo):
        user = User(product_key="KEY", last_login=BASE_TIME)
        user_repo.insert(user)

        assert user_repo.update_last_login(user) is True

        loaded = user_repo.get_by_id(user.id)
        assert loaded.last_login > BASE_TIME + timedelta(days=1)

    def test_get_by_role(self, user_repo):
        user_repo.insert(User(product_key="A", role=UserRole.ADMIN))
        user_repo.insert(User(product_key="T1"))
        user_repo.insert(User(product_key="T2", role=UserRole.TECHNICIAN))

        admins = user_repo.get_by_role(UserRole.ADMIN)
        technicians = user_repo.get_by_role("Technician")

        assert [u.product_key for u in admins] == ["A"]
        assert sorted(u.product_key for u in technicians) == ["T1", "T2"]


class TestUserRole:
    """角色枚举"""

    def test_values(self):
        assert UserRole.values() == ["Admin", "Technician"]
        assert UserRole.is_valid("Admin") is True
        assert UserRole.is_valid("Guest") is False
