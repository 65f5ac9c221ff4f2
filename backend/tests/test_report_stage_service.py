# Overview: Pytest coverage for the report stage catalog.

import pytest

from tms.services import report_stage_service
from tms.services.report_stage_service import DEFAULT_STAGES
from tms.validation import NotFoundError, ValidationError


class TestInitialize:
    def test_seeds_default_pipeline(self, org_a):
        stages = report_stage_service.initialize_report_stages(org_a.id)

        assert [s["type"] for s in stages] == [row[0] for row in DEFAULT_STAGES]
        assert [s["display_order"] for s in stages] == list(range(1, len(DEFAULT_STAGES) + 1))
        assert all(s["is_system"] for s in stages)

    def test_idempotent(self, org_a):
        first = report_stage_service.initialize_report_stages(org_a.id)
        second = report_stage_service.initialize_report_stages(org_a.id)
        assert [s["id"] for s in first] == [s["id"] for s in second]

    def test_missing_types_appended_after_custom(self, org_a):
        custom = report_stage_service.create_report_stage(org_a.id, name="Customs cleared", stage_type="CUSTOMS_CLEARED")
        stages = report_stage_service.initialize_report_stages(org_a.id)

        assert stages[0]["id"] == custom["id"]
        assert stages[1]["type"] == "NEW"
        assert stages[1]["display_order"] == 2

    def test_orgs_are_independent(self, org_a, org_b):
        report_stage_service.initialize_report_stages(org_a.id)
        assert report_stage_service.list_report_stages(org_b.id) == []


class TestCustomStages:
    def test_appended_at_end(self, org_a, stages_a):
        stage = report_stage_service.create_report_stage(org_a.id, name="At border", stage_type="at_border", is_photo_required=True)
        assert stage["type"] == "AT_BORDER"
        assert stage["display_order"] == len(DEFAULT_STAGES) + 1
        assert stage["is_system"] is False
        assert report_stage_service.get_stage_order(org_a.id).has_type("AT_BORDER")

    def test_duplicate_type_rejected(self, org_a, stages_a):
        with pytest.raises(ValidationError):
            report_stage_service.create_report_stage(org_a.id, name="Another delivered", stage_type="DELIVERED")

    def test_name_required(self, org_a, stages_a):
        with pytest.raises(ValidationError):
            report_stage_service.create_report_stage(org_a.id, name="  ")


class TestReorder:
    def test_reorder_changes_stage_comparison(self, org_a, stages_a):
        ids = [s["id"] for s in stages_a]
        by_type = {s["type"]: s["id"] for s in stages_a}
        # Move WAREHOUSE_PICKED_UP ahead of WAITING_FOR_PICKUP
        ids.remove(by_type["WAREHOUSE_PICKED_UP"])
        ids.insert(ids.index(by_type["WAITING_FOR_PICKUP"]), by_type["WAREHOUSE_PICKED_UP"])

        stages = report_stage_service.update_display_order(org_a.id, ids)

        assert [s["id"] for s in stages] == ids
        order = report_stage_service.get_stage_order(org_a.id)
        assert order.order_of("WAREHOUSE_PICKED_UP") < order.order_of("WAITING_FOR_PICKUP")

    def test_partial_list_rejected(self, org_a, stages_a):
        with pytest.raises(ValidationError):
            report_stage_service.update_display_order(org_a.id, [stages_a[0]["id"]])

    def test_foreign_stage_rejected(self, org_a, org_b, stages_a):
        other = report_stage_service.initialize_report_stages(org_b.id)
        ids = [s["id"] for s in stages_a] + [other[0]["id"]]
        with pytest.raises(NotFoundError):
            report_stage_service.update_display_order(org_a.id, ids)
