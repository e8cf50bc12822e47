"""
Tests for distance helpers, the grid index and proximity discovery.
"""

from datetime import datetime, timedelta, timezone
import time

import pytest

from app.core.exceptions import ForbiddenError, ValidationError
from app.core.settings import settings
from app.services import report_service
from app.services.claim_service import ClaimArbitrator
from app.services.geo_index import GeoIndex
from app.services.storage import get_report_store
from app.utils.geo import haversine_meters, latitude_band, longitude_span, rank_within_radius

LON, LAT = 80.27, 13.08
FIVE_KM_NORTH = LAT + 0.045  # ~5004 m


def test_haversine_one_degree_of_latitude():
    assert haversine_meters(0, 0, 0, 1) == pytest.approx(111195, abs=1)
    assert haversine_meters(LON, LAT, LON, LAT) == 0
    assert haversine_meters(LON, LAT, 77.59, 12.97) == pytest.approx(haversine_meters(77.59, 12.97, LON, LAT))


def test_haversine_five_km_offset():
    assert haversine_meters(LON, LAT, LON, FIVE_KM_NORTH) == pytest.approx(5004, abs=2)


def test_latitude_band_is_clamped_at_poles():
    lo, hi = latitude_band(89.99, 10000)
    assert hi == 90.0
    assert lo < 89.99
    assert longitude_span(89.99, 10000) is None
    assert longitude_span(0, 10000) == pytest.approx(0.0899, abs=1e-3)


def test_geo_index_candidates_cover_radius():
    index = GeoIndex(cell_size_degrees=0.05)
    index.insert("near", LON + 0.001, LAT)
    index.insert("five-km", LON, FIVE_KM_NORTH)
    index.insert("far", 77.59, 12.97)

    assert index.candidates(LON, LAT, 10000) >= {"near", "five-km"}
    assert "far" not in index.candidates(LON, LAT, 10000)
    assert len(index) == 3

    index.remove("near")
    assert "near" not in index
    assert "near" not in index.candidates(LON, LAT, 10000)


def test_geo_index_moves_reinserted_points():
    index = GeoIndex()
    index.insert("x", LON, LAT)
    index.insert("x", 77.59, 12.97)
    assert len(index) == 1
    assert "x" not in index.candidates(LON, LAT, 1000)
    assert "x" in index.candidates(77.59, 12.97, 1000)


def test_geo_index_across_antimeridian():
    index = GeoIndex()
    index.insert("east", 179.99, 0.0)
    assert "east" in index.candidates(-179.99, 0.0, 5000)


def test_geo_index_rejects_bad_cell_size():
    with pytest.raises(ValueError):
        GeoIndex(cell_size_degrees=0)


def test_rank_within_radius_orders_and_breaks_ties_by_age():
    now = datetime.now(timezone.utc)
    docs = [
        {"id": "newer", "location": {"longitude": LON, "latitude": LAT + 0.01}, "created_at": now},
        {"id": "older", "location": {"longitude": LON, "latitude": LAT + 0.01}, "created_at": now - timedelta(hours=1)},
        {"id": "closest", "location": {"longitude": LON, "latitude": LAT + 0.001}, "created_at": now},
        {"id": "outside", "location": {"longitude": LON, "latitude": LAT + 1}, "created_at": now},
        {"id": "no-location", "created_at": now},
    ]

    ranked = rank_within_radius(docs, LON, LAT, 5000, limit=10)

    assert [d["id"] for d, _ in ranked] == ["closest", "older", "newer"]
    distances = [m for _, m in ranked]
    assert distances == sorted(distances)
    assert all(m <= 5000 for m in distances)
    assert len(rank_within_radius(docs, LON, LAT, 5000, limit=1)) == 1


@pytest.mark.asyncio
async def test_nearby_radius_scenario(users, report_factory):
    far = await report_factory(users["citizen-1"], longitude=LON, latitude=FIVE_KM_NORTH)
    farther = await report_factory(users["citizen-1"], longitude=LON, latitude=LAT - 0.06)
    worker = users["worker-a"]

    assert await report_service.find_nearby_reports(worker, LON, LAT, 1000) == []

    ranked = await report_service.find_nearby_reports(worker, LON, LAT, 10000)
    assert [doc["id"] for doc, _ in ranked] == [far["id"], farther["id"]]
    distances = [m for _, m in ranked]
    assert distances[0] < distances[1] <= 10000


@pytest.mark.asyncio
async def test_nearby_excludes_other_workers_claims(users, report_factory):
    mine = await report_factory(users["citizen-1"], latitude=LAT + 0.001)
    theirs = await report_factory(users["citizen-1"], latitude=LAT + 0.002)
    open_report = await report_factory(users["citizen-1"], latitude=LAT + 0.003)
    await ClaimArbitrator().claim(mine["id"], users["worker-a"])
    await ClaimArbitrator().claim(theirs["id"], users["worker-b"])
    worker = users["worker-a"]

    unclaimed_only = await report_service.find_nearby_reports(worker, LON, LAT, 2000)
    assert [d["id"] for d, _ in unclaimed_only] == [open_report["id"]]

    with_mine = await report_service.find_nearby_reports(worker, LON, LAT, 2000, include_assigned=True)
    assert [d["id"] for d, _ in with_mine] == [mine["id"], open_report["id"]]


@pytest.mark.asyncio
async def test_nearby_without_point_falls_back_to_listing(users, report_factory):
    report = await report_factory(users["citizen-1"], longitude=10.0, latitude=10.0)

    results = await report_service.find_nearby_reports(users["worker-a"])

    assert [(d["id"], m) for d, m in results] == [(report["id"], None)]


@pytest.mark.asyncio
async def test_nearby_validates_input(users):
    worker = users["worker-a"]
    with pytest.raises(ValidationError):
        await report_service.find_nearby_reports(worker, LON, None)
    with pytest.raises(ValidationError):
        await report_service.find_nearby_reports(worker, LON, LAT, 0)
    with pytest.raises(ForbiddenError):
        await report_service.find_nearby_reports(users["citizen-1"], LON, LAT, 1000)


def test_nearby_endpoint_reports_distance_in_km(client, users, auth):
    for lat in (FIVE_KM_NORTH, LAT + 0.001):
        client.post(
            "/reports",
            headers=auth(users["citizen-1"]),
            data={"longitude": str(LON), "latitude": str(lat), "waste_type": "paper",
                  "estimated_quantity": "small", "description": "Cartons"},
        )

    response = client.get(
        "/reports/nearby",
        headers=auth(users["worker-a"]),
        params={"longitude": LON, "latitude": LAT, "radius": 10000},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert [r["distance_km"] for r in body["reports"]] == [0.11, 5.0]


def test_geo_index_huge_radius_walks_occupied_cells_only():
    index = GeoIndex()
    index.insert("only", LON, LAT)
    index.insert("west", -100.0, LAT)
    index.insert("arctic", LON, 70.0)

    started = time.perf_counter()
    found = index.candidates(LON, LAT, 5_000_000)
    elapsed = time.perf_counter() - started

    assert found == {"only"}
    assert elapsed < 0.1


def test_geo_index_cell_lookup_across_antimeridian():
    index = GeoIndex()
    # more occupied cells than the box holds, so box cells are looked up one by one
    for i in range(50):
        index.insert(f"filler-{i}", 10.0 + i, 10.0)
    index.insert("east", 179.99, 0.0)
    index.insert("west", -179.99, 0.0)

    assert index.candidates(-179.99, 0.0, 5000) == {"east", "west"}
    assert index.candidates(179.99, 0.0, 5000) == {"east", "west"}


@pytest.mark.asyncio
async def test_nearby_results_are_capped_nearest_first(users):
    store = get_report_store()
    total = settings.GEO_RESULT_CAP + 5
    now = datetime.now(timezone.utc)
    for i in range(total):
        await store.insert({
            "id": f"r{i:03d}",
            "status": "reported",
            "assigned_worker": None,
            "location": {"longitude": LON, "latitude": LAT + (i + 1) * 0.0001},
            "created_at": now,
        })

    ranked = await report_service.find_nearby_reports(users["worker-a"], LON, LAT, 5000)

    assert len(ranked) == settings.GEO_RESULT_CAP
    assert [doc["id"] for doc, _ in ranked] == [f"r{i:03d}" for i in range(settings.GEO_RESULT_CAP)]
    distances = [m for _, m in ranked]
    assert distances == sorted(distances)


@pytest.mark.asyncio
async def test_nearby_radius_has_an_upper_bound(users):
    with pytest.raises(ValidationError):
        await report_service.find_nearby_reports(
            users["worker-a"], LON, LAT, settings.MAX_SEARCH_RADIUS_METERS + 1
        )


def test_nearby_endpoint_rejects_oversized_radius(client, users, auth):
    response = client.get(
        "/reports/nearby",
        headers=auth(users["worker-a"]),
        params={"longitude": LON, "latitude": LAT, "radius": 5_000_000},
    )
    assert response.status_code == 400
