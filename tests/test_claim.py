"""
Tests for the claim arbitrator: single-winner claiming and contention outcomes.
"""

import asyncio

import pytest

from app.core.exceptions import ForbiddenError
from app.services.claim_service import ClaimArbitrator, ClaimOutcome
from app.services.status_workflow import StatusWorkflowEngine, transition_report
from app.services.storage import get_report_store, get_user_store


@pytest.mark.asyncio
async def test_concurrent_claims_have_exactly_one_winner(users, report_factory):
    report = await report_factory(users["citizen-1"])
    workers = [users["worker-a"], users["worker-b"]]
    for i in range(6):
        workers.append(await get_user_store().insert({"id": f"extra-{i}", "name": f"Extra {i}", "role": "waste_worker"}))

    arbitrator = ClaimArbitrator()
    results = await asyncio.gather(*(arbitrator.claim(report["id"], w) for w in workers))

    winners = [r for r in results if r.claimed]
    losers = [r for r in results if not r.claimed]
    assert len(winners) == 1
    assert len(losers) == len(workers) - 1
    winner_id = winners[0].holder_id
    assert all(r.outcome == ClaimOutcome.ALREADY_ASSIGNED for r in losers)
    assert all(r.holder_id == winner_id for r in losers)

    stored = await get_report_store().get(report["id"])
    assert stored["assigned_worker"] == winner_id
    assert stored["status"] == "assigned"
    assert StatusWorkflowEngine.invariant_violations(stored) == []
    claim_entries = [e for e in stored["status_history"] if e["to_status"] == "assigned"]
    assert len(claim_entries) == 1
    assert claim_entries[0]["from_status"] == "reported"


@pytest.mark.asyncio
async def test_claim_held_by_other_worker_names_holder(users, report_factory):
    report = await report_factory(users["citizen-1"])
    arbitrator = ClaimArbitrator()

    first = await arbitrator.claim(report["id"], users["worker-a"])
    second = await arbitrator.claim(report["id"], users["worker-b"])

    assert first.outcome == ClaimOutcome.CLAIMED
    assert second.outcome == ClaimOutcome.ALREADY_ASSIGNED
    assert second.holder_id == "worker-a"
    assert second.holder_name == "Ravi Kumar"
    assert second.message == "This report is already assigned to Ravi Kumar"


@pytest.mark.asyncio
async def test_reclaim_by_owner_is_a_no_op(users, report_factory):
    report = await report_factory(users["citizen-1"])
    arbitrator = ClaimArbitrator()
    await arbitrator.claim(report["id"], users["worker-a"])

    again = await arbitrator.claim(report["id"], users["worker-a"])

    assert again.outcome == ClaimOutcome.ALREADY_OWNED
    stored = await get_report_store().get(report["id"])
    assert len([e for e in stored["status_history"] if e["to_status"] == "assigned"]) == 1


@pytest.mark.asyncio
async def test_claim_acknowledged_report(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await transition_report(report["id"], users["admin-1"], "acknowledged")

    result = await ClaimArbitrator().claim(report["id"], users["worker-b"])

    assert result.claimed
    assert result.report["status"] == "assigned"
    assert result.report["status_history"][-1]["from_status"] == "acknowledged"


@pytest.mark.asyncio
async def test_claim_unknown_report(users):
    result = await ClaimArbitrator().claim("does-not-exist", users["worker-a"])
    assert result.outcome == ClaimOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_rejected_report_cannot_be_claimed(users, report_factory):
    report = await report_factory(users["citizen-1"])
    await transition_report(report["id"], users["admin-1"], "rejected", notes="Duplicate")

    result = await ClaimArbitrator().claim(report["id"], users["worker-a"])

    assert result.outcome == ClaimOutcome.NOT_CLAIMABLE
    stored = await get_report_store().get(report["id"])
    assert stored["assigned_worker"] is None


@pytest.mark.asyncio
async def test_only_active_workers_can_claim(users, report_factory):
    report = await report_factory(users["citizen-1"])
    arbitrator = ClaimArbitrator()

    with pytest.raises(ForbiddenError):
        await arbitrator.claim(report["id"], users["citizen-1"])
    with pytest.raises(ForbiddenError):
        await arbitrator.claim(report["id"], users["admin-1"])
    with pytest.raises(ForbiddenError):
        await arbitrator.claim(report["id"], users["worker-off"])


def test_two_workers_claim_report_submitted_in_chennai(client, users, auth):
    created = client.post(
        "/reports",
        headers=auth(users["citizen-1"]),
        data={
            "longitude": "80.27",
            "latitude": "13.08",
            "waste_type": "mixed",
            "estimated_quantity": "large",
            "description": "Garbage pile near the market",
        },
    )
    assert created.status_code == 201
    report_id = created.json()["report"]["id"]

    first = client.put(f"/reports/{report_id}/claim", headers=auth(users["worker-a"]))
    second = client.put(f"/reports/{report_id}/claim", headers=auth(users["worker-b"]))

    assert first.status_code == 200
    assert first.json()["report"]["assigned_worker"] == "worker-a"
    assert second.status_code == 400
    body = second.json()
    assert body["success"] is False
    assert body["message"] == "This report is already assigned to Ravi Kumar"
    assert body["holder"] == "Ravi Kumar"

    again = client.put(f"/reports/{report_id}/claim", headers=auth(users["worker-a"]))
    assert again.status_code == 200
    assert again.json()["message"] == "You have already claimed this report"


def test_claim_requires_worker_role(client, users, auth, report_factory):
    report = asyncio.run(report_factory(users["citizen-1"]))

    response = client.put(f"/reports/{report['id']}/claim", headers=auth(users["citizen-1"]))
    assert response.status_code == 403

    response = client.put(f"/reports/{report['id']}/claim")
    assert response.status_code == 401


def test_claim_unknown_report_is_404(client, users, auth):
    response = client.put("/reports/nope/claim", headers=auth(users["worker-a"]))
    assert response.status_code == 404
