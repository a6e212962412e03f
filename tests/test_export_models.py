#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
导入导出模型测试
"""

import base64
import json

from guidestore.models.export import (
    BackupInfo, GuideExport, GuideExportData, GuidesExport, ImportResult, StepExportData
)

from conftest import BASE_TIME, make_guide


class TestGuideExportData:
    """Guide <-> 导出数据"""

    def test_from_guide_copies_fields(self):
        guide = make_guide(title="Router", category="Network", step_count=2)
        guide.id = "source-id"

        data = GuideExportData.from_guide(guide)

        assert data.id == "source-id"
        assert data.title == "Router"
        assert data.category == "Network"
        assert data.estimated_minutes == 30
        assert [s.order for s in data.steps] == [1, 2]
        assert data.steps[0].id == guide.steps[0].id
        assert data.steps[0].images_base64 is None

    def test_from_guide_embeds_images(self):
        guide = make_guide(step_count=1, image_ids_per_step=[["img_a", "img_missing"]])
        store = {"img_a": b"\x89PNG"}

        data = GuideExportData.from_guide(guide, image_loader=store.get)

        images = data.steps[0].images_base64
        assert list(images) == ["img_a"]
        assert base64.b64decode(images["img_a"]) == b"\x89PNG"
        assert data.steps[0].decode_image("img_a") == b"\x89PNG"
        assert data.steps[0].decode_image("img_missing") is None

    def test_to_guide_uses_fresh_identities(self):
        guide = make_guide(step_count=2)
        guide.id = "source-id"
        data = GuideExportData.from_guide(guide)

        imported = data.to_guide()

        assert imported.id == ""
        assert imported.title == guide.title
        assert imported.created_by == "Imported"
        assert [s.order for s in imported.steps] == [1, 2]
        source_step_ids = {s.id for s in guide.steps}
        assert all(s.id and s.id not in source_step_ids for s in imported.steps)
        assert imported.created_at > BASE_TIME

    def test_to_guide_maps_images(self):
        step = StepExportData(order=1, title="s",
                              images_base64={"old1": "AA==", "old2": "AA=="},
                              image_file_names={"old3": "step_1_image_3.png"})
        data = GuideExportData(title="t", steps=[step])

        imported = data.to_guide(image_id_map={"old1": "new1", "old3": "new3"})

        assert imported.steps[0].image_ids == ["new1", "new3"]
        assert data.to_guide().steps[0].image_ids == []


class TestSerialization:
    """camelCase 序列化"""

    def test_guide_export_aliases(self):
        export = GuideExport(guide=GuideExportData.from_guide(make_guide(step_count=1)))
        payload = json.loads(export.to_json())

        assert payload["version"] == "1.0"
        assert "exportDate" in payload
        assert "estimatedMinutes" in payload["guide"]
        assert "createdAt" in payload["guide"]["steps"][0]

    def test_parse_camel_case(self):
        payload = {
            "version": "1.0",
            "exportDate": "2025-01-15T08:00:00Z",
            "guideCount": 1,
            "guides": [{
                "title": "Imported",
                "estimatedMinutes": 15,
                "steps": [{"order": 1, "title": "One", "imageFileNames": {"a": "a.png"}}],
            }],
        }
        export = GuidesExport.model_validate(payload)

        assert export.guide_count == 1
        assert export.guides[0].estimated_minutes == 15
        assert export.guides[0].steps[0].image_file_names == {"a": "a.png"}

    def test_from_guides(self):
        export = GuidesExport.from_guides([make_guide(title="a"), make_guide(title="b")])
        assert export.guide_count == 2
        assert [g.title for g in export.guides] == ["a", "b"]


class TestImportResult:
    """导入结果"""

    def test_success(self):
        result = ImportResult.create_success(["g1", "g2"], images_imported=3)
        assert result.success is True
        assert result.guides_imported == 2
        assert result.summary_message() == "2 guide(s) imported successfully, 3 image(s) imported"

    def test_failure(self):
        result = ImportResult.create_failure("bad file")
        assert result.success is False
        assert result.has_errors is True
        assert result.summary_message() == "Import failed: bad file"

    def test_partial(self):
        result = ImportResult.create_partial_success(["g1"], ["e1"], ["w1", "w2"])
        result.duplicates_skipped = 1

        assert result.success is True
        assert result.summary_message() == (
            "1 guide(s) imported successfully, 1 duplicate(s) skipped, 2 warning(s), 1 error(s)"
        )

    def test_partial_with_nothing_imported(self):
        result = ImportResult.create_partial_success([], ["e1"], [])
        assert result.success is False
        assert result.summary_message() == "Import failed: e1"


class TestBackupInfo:
    """备份元数据"""

    def test_summary(self):
        info = BackupInfo(backup_date=BASE_TIME, guide_count=5, user_count=1,
                          progress_count=7, database_size=20480)
        assert info.summary() == (
            "Backup from 2025-01-15 08:00 - 5 guides, 1 users, 7 progress records - 20 KB"
        )

    def test_json_round_trip(self):
        info = BackupInfo(guide_count=2, is_valid=True)
        loaded = BackupInfo.model_validate(json.loads(info.to_json()))

        assert loaded.guide_count == 2
        assert loaded.is_valid is True
        assert "guideCount" in json.loads(info.to_json())
