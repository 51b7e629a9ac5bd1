"""Unit tests for the estimate workflow service."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.settings import settings
from config.errors import ErrorCode, NotFoundError, ValidationError
from models.estimate import Estimate, EstimateItem, EstimateRoom, EstimateUpdate
from models.timeline import TimelineEventStatus, TimelineEventType
from services.estimation_engine import calculate_financials, summarize_rooms
from services.estimation_service import EstimationService

LABOR_RATE = 85


def _item(code, assembly_id, quantity, minutes, unit_material, phase="trim", item_id=None):
    labor_hours = quantity * minutes / 60
    material_cost = quantity * unit_material
    return EstimateItem(
        item_id=item_id or f"item-{code.lower()}",
        assembly_id=assembly_id,
        assembly_code=code,
        assembly_name=code.title(),
        device_type="receptacle",
        quantity=quantity,
        labor_hours=labor_hours,
        material_cost=material_cost,
        total_cost=labor_hours * LABOR_RATE + material_cost,
        phase=phase,
    )


def _estimate_record(estimate_id, rooms, status="draft", version=1, **extra):
    room_models = [
        EstimateRoom(room_id=f"room-{index}", name=name, items=items)
        for index, (name, items) in enumerate(rooms)
    ]
    phases = summarize_rooms(room_models)
    estimate = Estimate(
        estimate_id=estimate_id,
        project_id="proj-1",
        company_id="co-1",
        status=status,
        version=version,
        rooms=room_models,
        phases=phases,
        financials=calculate_financials(phases, LABOR_RATE, 15, 10),
        **extra
    )
    return {
        "PK": "PROJECT#proj-1",
        "SK": f"ESTIMATE#{estimate_id}",
        "GSI1PK": f"ESTIMATE#{estimate_id}",
        "GSI1SK": "PROJECT#proj-1",
        **estimate.to_firestore_dict()
    }


def _kitchen_items(receptacles=4):
    return [
        _item("REC-STD", "asm-rec-std", receptacles, 15, 3.5),
        _item("SW-SNGL", "asm-sw-sngl", 3, 12, 4.0),
    ]


@pytest.fixture
def timeline():
    timeline = MagicMock()
    timeline.add_event = AsyncMock()
    return timeline


@pytest.fixture
def service(seeded_store, catalog, timeline):
    return EstimationService(seeded_store, catalog, timeline)


class TestCreateAndRead:
    """Estimate creation and lookup."""

    @pytest.mark.asyncio
    async def test_create_first_version(self, service, seeded_store):
        estimate = await service.create_estimate("proj-1", "user-1", company_id="co-1")

        assert estimate.version == 1
        assert estimate.status == "draft"
        assert estimate.job_name == "Maple Street Remodel"
        assert estimate.customer_name == "Jordan Homes"
        assert estimate.rooms == []
        assert [p.name for p in estimate.phases] == ["Rough", "Trim", "Service"]
        assert estimate.financials.labor_rate == 85
        assert estimate.financials.total_cost == 0

        stored = await seeded_store.get_item(
            settings.estimates_table, "PROJECT#proj-1", f"ESTIMATE#{estimate.estimate_id}"
        )
        assert stored["GSI1PK"] == f"ESTIMATE#{estimate.estimate_id}"

    @pytest.mark.asyncio
    async def test_create_uses_next_version(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="sent", version=1))
        seeded_store.seed(settings.estimates_table, _estimate_record("est-3", [], status="draft", version=3))

        estimate = await service.create_estimate("proj-1", "user-1")

        assert estimate.version == 4
        assert estimate.financials.overhead_percentage == settings.default_overhead_percentage

    @pytest.mark.asyncio
    async def test_create_for_missing_project(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.create_estimate("proj-404", "user-1")

        assert exc_info.value.code == ErrorCode.PROJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_create_for_missing_company(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.create_estimate("proj-1", "user-1", company_id="co-404")

        assert exc_info.value.code == ErrorCode.COMPANY_NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_newest_first(self, service, seeded_store):
        for estimate_id, version in (("est-a", 2), ("est-b", 1), ("est-c", 3)):
            seeded_store.seed(settings.estimates_table, _estimate_record(estimate_id, [], version=version))

        estimates = await service.list_project_estimates("proj-1")
        latest = await service.get_latest_estimate("proj-1")

        assert [e.version for e in estimates] == [3, 2, 1]
        assert latest.estimate_id == "est-c"

    @pytest.mark.asyncio
    async def test_get_missing_estimate(self, service):
        assert await service.get_estimate("proj-1", "est-404") is None
        assert await service.get_latest_estimate("proj-2") is None


class TestUpdateEstimate:
    """Draft editing."""

    @pytest.mark.asyncio
    async def test_update_metadata_only(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", _kitchen_items())]))

        updated = await service.update_estimate(
            "proj-1", "est-1", EstimateUpdate(notes="Client wants dimmers", jobAddress="42 Maple St"), "user-2"
        )

        assert updated.notes == "Client wants dimmers"
        assert updated.job_address == "42 Maple St"
        assert updated.updated_by == "user-2"
        _, _, _, data = seeded_store.updates[-1]
        assert "rooms" not in data
        assert "financials" not in data

    @pytest.mark.asyncio
    async def test_replacing_rooms_reprices(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", _kitchen_items())]))
        original = await service.get_estimate("proj-1", "est-1")
        new_item = _item("REC-STD", "asm-rec-std", 8, 15, 3.5).model_copy(update={"total_cost": 0.0})
        rooms = [EstimateRoom(room_id="room-0", name="Kitchen", items=[new_item])]

        updated = await service.update_estimate("proj-1", "est-1", EstimateUpdate(rooms=rooms), "user-1")

        item = updated.rooms[0].items[0]
        assert item.total_cost == pytest.approx(2 * LABOR_RATE + 28)
        trim = next(p for p in updated.phases if p.name == "Trim")
        assert trim.total_cost == pytest.approx(item.total_cost)
        assert {p.name: p.phase_id for p in updated.phases} == {p.name: p.phase_id for p in original.phases}
        assert updated.financials.subtotal == pytest.approx(2 * LABOR_RATE + 28)
        assert updated.financials.total_cost == pytest.approx((2 * LABOR_RATE + 28) * 1.15 * 1.10)

    @pytest.mark.asyncio
    async def test_rate_change_recomputes_financials(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", _kitchen_items())]))
        before = await service.get_estimate("proj-1", "est-1")

        updated = await service.update_estimate(
            "proj-1", "est-1", EstimateUpdate(overheadPercentage=0, profitPercentage=0), "user-1"
        )

        assert updated.financials.overhead_amount == 0
        assert updated.financials.total_cost == pytest.approx(before.financials.subtotal)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["pending", "sent"])
    async def test_non_draft_rejected(self, service, seeded_store, status):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status=status))

        with pytest.raises(ValidationError) as exc_info:
            await service.update_estimate("proj-1", "est-1", EstimateUpdate(notes="late change"), "user-1")

        assert exc_info.value.code == ErrorCode.INVALID_STATE
        assert seeded_store.updates == []
        unchanged = await service.get_estimate("proj-1", "est-1")
        assert unchanged.status == status
        assert unchanged.notes == ""

    @pytest.mark.asyncio
    async def test_missing_estimate(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.update_estimate("proj-1", "est-404", EstimateUpdate(notes="x"), "user-1")

        assert exc_info.value.code == ErrorCode.ESTIMATE_NOT_FOUND


class TestStatusWorkflow:
    """Submit, status changes and revisions."""

    @pytest.mark.asyncio
    async def test_submit_draft(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", []))

        submitted = await service.submit_estimate_for_approval("proj-1", "est-1", "user-1")

        assert submitted.status == "pending"
        with pytest.raises(ValidationError):
            await service.submit_estimate_for_approval("proj-1", "est-1", "user-1")

    @pytest.mark.asyncio
    async def test_sent_stamps_date_and_records_event(self, service, seeded_store, timeline):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="pending"))

        estimate = await service.update_estimate_status("proj-1", "est-1", "sent", "user-1", note="Emailed")

        assert estimate.status == "sent"
        assert estimate.sent_date is not None
        assert estimate.status_note == "Emailed"
        kwargs = timeline.add_event.await_args.kwargs
        assert kwargs["event_type"] == TimelineEventType.ESTIMATE_SENT
        assert kwargs["status"] == TimelineEventStatus.COMPLETED
        assert kwargs["related_entity_type"] == "estimate"
        assert kwargs["related_entity_id"] == "est-1"
        assert kwargs["description"] == "Emailed"

    @pytest.mark.asyncio
    async def test_approved_records_approver(self, service, seeded_store, timeline):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="pending"))

        estimate = await service.update_estimate_status("proj-1", "est-1", "approved", "manager-1")

        assert estimate.approved_by == "manager-1"
        assert estimate.approved_date is not None
        kwargs = timeline.add_event.await_args.kwargs
        assert kwargs["event_type"] == TimelineEventType.CUSTOM
        assert kwargs["title"] == "Estimate Approved"

    @pytest.mark.asyncio
    async def test_unknown_status(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", []))

        with pytest.raises(ValidationError) as exc_info:
            await service.update_estimate_status("proj-1", "est-1", "archived", "user-1")

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_missing_estimate_returns_none(self, service, timeline):
        assert await service.update_estimate_status("proj-1", "est-404", "sent", "user-1") is None
        timeline.add_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_is_terminal(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="rejected"))

        with pytest.raises(ValidationError) as exc_info:
            await service.update_estimate_status("proj-1", "est-1", "accepted", "user-1")

        assert exc_info.value.code == ErrorCode.INVALID_STATE

    @pytest.mark.asyncio
    async def test_timeline_failure_does_not_fail_status_change(self, service, seeded_store, timeline):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="sent"))
        timeline.add_event.side_effect = RuntimeError("timeline unavailable")

        estimate = await service.update_estimate_status("proj-1", "est-1", "accepted", "user-1")

        assert estimate.status == "accepted"
        assert estimate.accepted_date is not None

    @pytest.mark.asyncio
    async def test_without_timeline(self, seeded_store, catalog):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status="sent"))
        service = EstimationService(seeded_store, catalog)

        estimate = await service.update_estimate_status("proj-1", "est-1", "rejected", "user-1")

        assert estimate.rejected_date is not None

    @pytest.mark.asyncio
    async def test_revise_sent_estimate(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record(
            "est-1", [("Kitchen", _kitchen_items())], status="sent", sentDate="2025-03-01T00:00:00+00:00"
        ))

        revision = await service.revise_estimate("proj-1", "est-1", "user-2")

        assert revision.estimate_id != "est-1"
        assert revision.status == "draft"
        assert revision.version == 2
        assert revision.revised_from == "est-1"
        assert revision.sent_date is None
        assert revision.created_by == "user-2"
        original_ids = {item.item_id for item in _kitchen_items()}
        assert not original_ids & {item.item_id for item in revision.rooms[0].items}
        assert revision.financials.total_cost > 0

        source = await service.get_estimate("proj-1", "est-1")
        assert source.status == "revised"
        assert source.revised_by_estimate_id == revision.estimate_id
        assert await service.get_estimate("proj-1", revision.estimate_id) is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["draft", "rejected"])
    async def test_revise_not_allowed(self, service, seeded_store, status):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [], status=status))

        with pytest.raises(ValidationError) as exc_info:
            await service.revise_estimate("proj-1", "est-1", "user-1")

        assert exc_info.value.code == ErrorCode.INVALID_STATE


class TestMaterialsTakeoff:
    """Bill-of-materials aggregation."""

    @pytest.mark.asyncio
    async def test_takeoff_lines(self, service, seeded_store):
        items = _kitchen_items() + [
            _item("REC-GFCI", "asm-rec-gfci", 2, 20, 18),
            _item("GONE", "asm-gone", 1, 10, 1),
        ]
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", items)]))

        takeoff = await service.generate_materials_takeoff("proj-1", "est-1", "user-1")

        lines = {line.material_id: line for line in takeoff.items}
        assert list(lines) == ["mat-receptacle", "mat-box", "mat-switch"]

        # 4 receptacles at the material's 1.05 waste -> 5
        assert lines["mat-receptacle"].waste_factor == 1.05
        assert lines["mat-receptacle"].adjusted_quantity == 5
        assert lines["mat-receptacle"].total_cost == pytest.approx(12.5)

        # 4 boxes at the default 1.1 -> 5, plus 3 at the line's 1.2 -> 4
        assert lines["mat-box"].quantity == 7
        assert lines["mat-box"].adjusted_quantity == 9
        assert lines["mat-box"].purchase_needed == 9
        assert lines["mat-box"].total_cost == pytest.approx(9)

        assert lines["mat-switch"].adjusted_quantity == 3
        assert takeoff.total_cost == pytest.approx(12.5 + 9 + 9)
        assert takeoff.version == 1

    @pytest.mark.asyncio
    async def test_takeoff_versions_per_estimate(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", _kitchen_items())]))

        await service.generate_materials_takeoff("proj-1", "est-1", "user-1")
        second = await service.generate_materials_takeoff("proj-1", "est-1", "user-1")

        assert second.version == 2
        stored = await seeded_store.get_item(
            settings.takeoffs_table, "PROJECT#proj-1", f"TAKEOFF#{second.takeoff_id}"
        )
        assert stored["GSI1SK"] == "ESTIMATE#est-1"
        assert stored["version"] == 2

    @pytest.mark.asyncio
    async def test_takeoff_for_missing_estimate(self, service):
        with pytest.raises(NotFoundError):
            await service.generate_materials_takeoff("proj-1", "est-404", "user-1")


class TestCompareEstimates:
    """Version-to-version comparison."""

    @pytest.mark.asyncio
    async def test_item_changes(self, service, seeded_store):
        original = _estimate_record("est-1", [
            ("Kitchen", _kitchen_items(receptacles=4)),
            ("Laundry", [_item("REC-GFCI", "asm-rec-gfci", 2, 20, 18)]),
        ], status="revised")
        revised = _estimate_record("est-2", [
            ("Kitchen", _kitchen_items(receptacles=6) + [_item("LT-CEIL", "asm-lt-ceil", 1, 30, 25)]),
        ], version=2)
        seeded_store.seed(settings.estimates_table, original)
        seeded_store.seed(settings.estimates_table, revised)

        comparison = await service.compare_estimates("proj-1", "est-1", "est-2", "user-1")

        assert [room.room_name for room in comparison.changes] == ["Kitchen", "Laundry"]
        kitchen = {change.assembly_code: change for change in comparison.changes[0].items}
        assert set(kitchen) == {"REC-STD", "LT-CEIL"}
        assert kitchen["REC-STD"].change_type == "modified"
        assert kitchen["REC-STD"].difference.quantity == 2
        assert kitchen["LT-CEIL"].change_type == "added"
        assert kitchen["LT-CEIL"].original is None

        laundry = comparison.changes[1].items
        assert laundry[0].change_type == "removed"
        assert laundry[0].revised is None
        assert laundry[0].difference.quantity == -2

        expected = revised["financials"]["totalCost"] - original["financials"]["totalCost"]
        assert comparison.difference_amount == pytest.approx(expected)
        assert comparison.difference_percent == pytest.approx(expected / original["financials"]["totalCost"] * 100)

    @pytest.mark.asyncio
    async def test_identical_estimates(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", [("Kitchen", _kitchen_items())]))
        seeded_store.seed(settings.estimates_table, _estimate_record("est-2", [("Kitchen", _kitchen_items())], version=2))

        comparison = await service.compare_estimates("proj-1", "est-1", "est-2", "user-1")

        assert comparison.changes == []
        assert comparison.difference_amount == 0
        assert comparison.difference_percent == 0

    @pytest.mark.asyncio
    async def test_from_empty_estimate(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", []))
        seeded_store.seed(settings.estimates_table, _estimate_record("est-2", [("Kitchen", _kitchen_items())], version=2))

        comparison = await service.compare_estimates("proj-1", "est-1", "est-2", "user-1")

        assert comparison.difference_percent == 100
        assert all(change.change_type == "added" for change in comparison.changes[0].items)

    @pytest.mark.asyncio
    async def test_missing_estimate(self, service, seeded_store):
        seeded_store.seed(settings.estimates_table, _estimate_record("est-1", []))

        with pytest.raises(NotFoundError):
            await service.compare_estimates("proj-1", "est-1", "est-404", "user-1")
