"""
Tests for the report lifecycle state machine.
"""

from datetime import datetime, timezone
import itertools

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, InvalidTransitionError, ValidationError
from app.core.settings import settings
from app.models.report import ReportStatus
from app.services.claim_service import ClaimArbitrator
from app.services.reward_ledger import get_reward_ledger
from app.services.status_workflow import StatusWorkflowEngine, transition_report
from app.services.storage import get_report_store, get_user_store

ALL_STATUSES = [s.value for s in ReportStatus]
INVALID_PAIRS = [
    (current, target)
    for current, target in itertools.product(ALL_STATUSES, ALL_STATUSES)
    if target not in StatusWorkflowEngine.get_allowed_transitions(current)
]


async def _report_in_status(status, worker="worker-a"):
    """Insert a report directly in `status`, consistent with the lifecycle invariants."""
    now = datetime.now(timezone.utc)
    needs_worker = ReportStatus(status) in StatusWorkflowEngine.ASSIGNEE_REQUIRED
    doc = {
        "reporter": "citizen-1",
        "location": {"longitude": 80.27, "latitude": 13.08},
        "waste_type": "plastic",
        "category": "household",
        "severity": "medium",
        "estimated_quantity": "small",
        "description": "Fixture report",
        "images": [],
        "status": status,
        "assigned_worker": worker if needs_worker else None,
        "actual_collection": None,
        "priority": 3,
        "rewards": {"points_awarded": 10, "awarded_at": now, "completion_points": 0, "completion_awarded_at": None},
        "status_history": [],
        "created_at": now,
        "updated_at": now,
    }
    if status in ("completed", "verified"):
        doc["actual_collection"] = {"date": now, "worker": worker, "notes": None}
        doc["status_history"] = [{"from_status": "in_progress", "to_status": "completed", "changed_by": worker, "timestamp": now, "note": ""}]
    return await get_report_store().insert(doc)


async def _points(user_id):
    user = await get_user_store().get(user_id)
    return user["rewards"]["points"], user["rewards"]["total_earned"]


async def _assert_consistent(report_id):
    report = await get_report_store().get(report_id)
    assert StatusWorkflowEngine.invariant_violations(report) == []
    return report


def test_transition_table_shape():
    assert StatusWorkflowEngine.get_allowed_transitions("verified") == []
    assert StatusWorkflowEngine.get_allowed_transitions("rejected") == []
    assert StatusWorkflowEngine.is_valid_transition("reported", "acknowledged")
    assert not StatusWorkflowEngine.is_valid_transition("in_progress", "assigned")
    assert not StatusWorkflowEngine.is_valid_transition("reported", "reported")
    assert not StatusWorkflowEngine.is_valid_transition("reported", "bogus")


def test_parse_status_rejects_unknown_values():
    with pytest.raises(ValidationError):
        StatusWorkflowEngine.parse_status("done")


@pytest.mark.parametrize("current,target", INVALID_PAIRS)
@pytest.mark.asyncio
async def test_invalid_pairs_are_rejected(users, current, target):
    report = await _report_in_status(current)

    with pytest.raises(InvalidTransitionError):
        await transition_report(report["id"], users["admin-1"], target)

    stored = await get_report_store().get(report["id"])
    assert stored["status"] == current


@pytest.mark.asyncio
async def test_assigned_is_reached_only_by_claiming(users, report_factory):
    report = await report_factory(users["citizen-1"])
    with pytest.raises(InvalidTransitionError):
        await transition_report(report["id"], users["admin-1"], "assigned")


@pytest.mark.asyncio
async def test_worker_cannot_move_someone_elses_report(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])

    with pytest.raises(ForbiddenError) as excinfo:
        await transition_report(report["id"], users["worker-b"], "in_progress")

    assert excinfo.value.detail == "You can only update reports assigned to you"
    stored = await _assert_consistent(report["id"])
    assert stored["status"] == "assigned"


@pytest.mark.asyncio
async def test_worker_cannot_touch_unclaimed_report(users, report_factory):
    report = await report_factory(users["citizen-1"])
    with pytest.raises(ForbiddenError):
        await transition_report(report["id"], users["worker-a"], "acknowledged")


@pytest.mark.asyncio
async def test_worker_completes_report_and_reporter_is_rewarded(users, report_factory):
    report = await report_factory(users["citizen-1"])
    worker = users["worker-a"]
    await ClaimArbitrator().claim(report["id"], worker)
    await _assert_consistent(report["id"])

    await transition_report(report["id"], worker, "in_progress")
    await _assert_consistent(report["id"])
    points_before, total_before = await _points("citizen-1")
    worker_points_before, _ = await _points("worker-a")

    completed = await transition_report(report["id"], worker, "completed", notes="collected 3 bags")

    assert completed["status"] == "completed"
    assert completed["actual_collection"]["worker"] == "worker-a"
    assert completed["actual_collection"]["notes"] == "collected 3 bags"
    assert completed["rewards"]["completion_awarded_at"] is not None
    assert completed["rewards"]["completion_points"] == settings.COMPLETION_REWARD_POINTS
    points_after, total_after = await _points("citizen-1")
    assert points_after == points_before + settings.COMPLETION_REWARD_POINTS
    assert total_after == total_before + settings.COMPLETION_REWARD_POINTS
    assert (await _points("worker-a"))[0] == worker_points_before
    await _assert_consistent(report["id"])

    history = [(e["from_status"], e["to_status"]) for e in completed["status_history"]]
    assert history == [
        ("", "reported"),
        ("reported", "assigned"),
        ("assigned", "in_progress"),
        ("in_progress", "completed"),
    ]


@pytest.mark.asyncio
async def test_completion_reward_is_issued_once(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    await transition_report(report["id"], users["worker-a"], "in_progress")
    await transition_report(report["id"], users["worker-a"], "completed")
    points, _ = await _points("citizen-1")

    assert await get_reward_ledger().issue_completion_reward(report["id"]) is False
    assert (await _points("citizen-1"))[0] == points


@pytest.mark.asyncio
async def test_rejection_has_no_reward(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    points_before, _ = await _points("citizen-1")

    rejected = await transition_report(report["id"], users["worker-a"], "rejected", notes="Not waste")

    assert rejected["status"] == "rejected"
    assert rejected["rewards"]["completion_awarded_at"] is None
    assert (await _points("citizen-1"))[0] == points_before
    await _assert_consistent(report["id"])


@pytest.mark.asyncio
async def test_verification_is_admin_only(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    await transition_report(report["id"], users["worker-a"], "in_progress")
    await transition_report(report["id"], users["worker-a"], "completed")

    with pytest.raises(ForbiddenError):
        await transition_report(report["id"], users["worker-a"], "verified")

    verified = await transition_report(report["id"], users["admin-1"], "verified", notes="Site checked")
    assert verified["status"] == "verified"
    assert verified["verification"]["verified_by"] == "admin-1"
    assert verified["actual_collection"]["worker"] == "worker-a"
    await _assert_consistent(report["id"])


@pytest.mark.asyncio
async def test_admin_acknowledges_then_rejects(users, report_factory):
    report = await report_factory(users["citizen-1"])

    acknowledged = await transition_report(report["id"], users["admin-1"], "acknowledged")
    assert acknowledged["status"] == "acknowledged"
    await _assert_consistent(report["id"])

    rejected = await transition_report(report["id"], users["admin-1"], "rejected")
    assert rejected["status"] == "rejected"
    assert rejected["assigned_worker"] is None


@pytest.mark.asyncio
async def test_admin_override_skips_forward(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    points_before, _ = await _points("citizen-1")

    completed = await transition_report(report["id"], users["admin-1"], "completed", notes="Cleared", override=True)

    assert completed["status"] == "completed"
    assert completed["actual_collection"]["worker"] == "admin-1"
    assert completed["status_history"][-1]["note"] == "[override] Cleared"
    assert (await _points("citizen-1"))[0] == points_before + settings.COMPLETION_REWARD_POINTS
    await _assert_consistent(report["id"])


@pytest.mark.asyncio
async def test_override_cannot_go_backwards_or_leave_terminal(users):
    in_progress = await _report_in_status("in_progress")
    verified = await _report_in_status("verified")

    with pytest.raises(InvalidTransitionError):
        await transition_report(in_progress["id"], users["admin-1"], "assigned", override=True)
    with pytest.raises(InvalidTransitionError):
        await transition_report(in_progress["id"], users["admin-1"], "verified", override=True)
    with pytest.raises(InvalidTransitionError):
        await transition_report(verified["id"], users["admin-1"], "rejected", override=True)


@pytest.mark.asyncio
async def test_override_needs_an_assignee(users, report_factory):
    report = await report_factory(users["citizen-1"])
    with pytest.raises(ConflictError):
        await transition_report(report["id"], users["admin-1"], "in_progress", override=True)


@pytest.mark.asyncio
async def test_only_admins_can_override(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    with pytest.raises(ForbiddenError):
        await transition_report(report["id"], users["worker-a"], "completed", override=True)


@pytest.mark.asyncio
async def test_stale_transition_is_a_conflict(users, report_factory, monkeypatch):
    report = await report_factory(users["citizen-1"])
    await ClaimArbitrator().claim(report["id"], users["worker-a"])
    store = get_report_store()
    stale = await store.get(report["id"])
    await transition_report(report["id"], users["admin-1"], "rejected")

    async def _stale_get(report_id):
        return dict(stale)

    monkeypatch.setattr(store, "get", _stale_get)
    with pytest.raises(ConflictError) as excinfo:
        await transition_report(report["id"], users["worker-a"], "in_progress")

    assert "now rejected" in excinfo.value.detail
    monkeypatch.undo()
    assert (await store.get(report["id"]))["status"] == "rejected"


def test_status_endpoint(client, users, auth):
    created = client.post(
        "/reports",
        headers=auth(users["citizen-1"]),
        data={"longitude": "80.27", "latitude": "13.08", "waste_type": "organic",
              "estimated_quantity": "small", "description": "Food waste"},
    ).json()["report"]
    report_id = created["id"]
    client.put(f"/reports/{report_id}/claim", headers=auth(users["worker-a"]))

    forbidden = client.put(f"/reports/{report_id}/status", headers=auth(users["worker-b"]), json={"status": "in_progress"})
    assert forbidden.status_code == 403

    invalid = client.put(f"/reports/{report_id}/status", headers=auth(users["worker-a"]), json={"status": "verified"})
    assert invalid.status_code == 400

    unknown = client.put(f"/reports/{report_id}/status", headers=auth(users["worker-a"]), json={"status": "done"})
    assert unknown.status_code == 400

    citizen = client.put(f"/reports/{report_id}/status", headers=auth(users["citizen-1"]), json={"status": "in_progress"})
    assert citizen.status_code == 403

    ok = client.put(f"/reports/{report_id}/status", headers=auth(users["worker-a"]), json={"status": "in_progress"})
    assert ok.status_code == 200
    assert ok.json()["message"] == "Status updated to in_progress"
    assert ok.json()["report"]["status"] == "in_progress"
