"""Tests for the admin console: list, review updates and CSV export."""
import csv
import io

import pytest

ADMIN_HEADERS = {"X-Admin-Secret": "test-secret"}


def vendor_answers(capacity="1–10", delivery="No", compliance="No", **extra):
    return {"daily_capacity": capacity, "delivery": delivery, "compliance": compliance, **extra}


async def _list(client, **params):
    res = await client.get("/api/admin/list", params=params, headers=ADMIN_HEADERS)
    assert res.status_code == 200, res.text
    return res.json()


async def _update(client, **payload):
    return await client.patch("/api/admin/update", json=payload, headers=ADMIN_HEADERS)


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"X-Admin-Secret": "wrong"}])
async def test_admin_routes_require_secret(client, headers):
    for method, url in [("GET", "/api/admin/list"), ("GET", "/api/admin/export"), ("PATCH", "/api/admin/update")]:
        res = await client.request(method, url, headers=headers, json={} if method == "PATCH" else None)
        assert res.status_code == 401
        assert res.json()["detail"] == "Unauthorized"


@pytest.mark.asyncio
async def test_list_defaults_to_newest_first(client, join):
    a = (await join(email="a@example.com")).json()
    b = (await join(email="b@example.com")).json()
    v = (await join(role="vendor", email="v@example.com")).json()

    data = await _list(client)
    assert data["total"] == 3
    assert data["degraded"] is False
    assert [r["id"] for r in data["rows"]] == [v["id"], b["id"], a["id"]]

    data = await _list(client, role="consumer", limit=1, offset=1)
    assert data["total"] == 2
    assert data["limit"] == 1
    assert [r["id"] for r in data["rows"]] == [a["id"]]


@pytest.mark.asyncio
async def test_vendor_list_follows_queue_order(client, join):
    low = (await join(role="vendor", email="low@example.com", answers=vendor_answers())).json()
    high = (
        await join(
            role="vendor",
            email="high@example.com",
            answers=vendor_answers("60+", "Yes", "Yes"),
        )
    ).json()
    mid = (await join(role="vendor", email="mid@example.com", answers=vendor_answers("31–60"))).json()

    data = await _list(client, role="vendor")
    assert [r["id"] for r in data["rows"]] == [high["id"], mid["id"], low["id"]]
    assert [r["score"] for r in data["rows"]] == [8, 3, 1]

    res = await _update(client, id=low["id"], vendor_queue_override=1)
    assert res.status_code == 200
    assert res.json()["row"]["vendor_queue_override"] == 1

    data = await _list(client, role="vendor")
    assert [r["id"] for r in data["rows"]] == [low["id"], high["id"], mid["id"]]

    status = await client.get("/api/queue/status", params={"id": low["id"]})
    assert status.json()["position"] == 1


@pytest.mark.asyncio
async def test_list_filters(client, join):
    await join(
        role="vendor",
        email="near@example.com",
        full_name="Near Kitchen",
        answers=vendor_answers(
            city="Nottingham",
            bus_minutes=15,
            instagram="@nearkitchen",
            compliance_readiness=["Level 2 Hygiene Certificate"],
        ),
    )
    await join(
        role="vendor",
        email="far@example.com",
        full_name="Far Kitchen",
        answers=vendor_answers(city="Derby", bus_minutes=45, instagram="no"),
    )

    def names(data):
        return sorted(r["full_name"] for r in data["rows"])

    assert names(await _list(client, city="notting")) == ["Near Kitchen"]
    assert names(await _list(client, max_bus_minutes="20")) == ["Near Kitchen"]
    assert names(await _list(client, has_instagram="true")) == ["Near Kitchen"]
    assert names(await _list(client, has_instagram="false")) == ["Far Kitchen"]
    assert names(await _list(client, compliance="Level 2 Hygiene Certificate")) == ["Near Kitchen"]
    assert names(await _list(client, q="FAR@")) == ["Far Kitchen"]
    assert names(await _list(client, status="approved")) == []


@pytest.mark.asyncio
async def test_list_rejects_unknown_status(client):
    res = await client.get("/api/admin/list", params={"status": "archived"}, headers=ADMIN_HEADERS)
    assert res.status_code == 400
    assert res.json()["detail"] == "invalid status"


@pytest.mark.asyncio
async def test_review_transitions(client, join):
    entry = (await join(role="vendor", email="v@example.com")).json()

    res = await _update(client, id=entry["id"], review_status="approved", admin_notes="great menu", reviewed_by="sam")
    assert res.status_code == 200
    row = res.json()["row"]
    assert row["review_status"] == "approved"
    assert row["reviewed_by"] == "sam"
    assert row["reviewed_at"] is not None
    assert row["admin_notes"] == "great menu"

    res = await _update(client, id=entry["id"], review_status="pending")
    row = res.json()["row"]
    assert row["review_status"] == "pending"
    assert row["reviewed_at"] is None
    assert row["reviewed_by"] == "admin"
    assert row["admin_notes"] == "great menu"

    data = await _list(client, status="pending")
    assert [r["id"] for r in data["rows"]] == [entry["id"]]


@pytest.mark.asyncio
async def test_repeating_an_update_is_idempotent(client, join):
    entry = (await join(role="vendor", email="v@example.com")).json()
    payload = {"id": entry["id"], "review_status": "rejected", "admin_notes": "no hygiene cert", "vendor_queue_override": 4}

    first = (await _update(client, **payload)).json()["row"]
    second = (await _update(client, **payload)).json()["row"]
    for key in ("review_status", "admin_notes", "vendor_queue_override", "reviewed_by"):
        assert first[key] == second[key]


@pytest.mark.asyncio
async def test_override_is_ignored_for_consumers(client, join):
    entry = (await join(email="c@example.com")).json()
    res = await _update(client, id=entry["id"], vendor_queue_override=1, admin_notes="friend of team")
    assert res.status_code == 200
    row = res.json()["row"]
    assert row["vendor_queue_override"] is None
    assert row["admin_notes"] == "friend of team"


@pytest.mark.asyncio
async def test_clearing_override_restores_automatic_order(client, join):
    entry = (await join(role="vendor", email="v@example.com")).json()
    await _update(client, id=entry["id"], vendor_queue_override="2")
    res = await _update(client, id=entry["id"], vendor_queue_override=None)
    assert res.json()["row"]["vendor_queue_override"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"review_status": "archived"},
        {"vendor_queue_override": "first"},
        {"vendor_queue_override": 1.5},
        {"vendor_queue_override": "1e20"},
        {"vendor_queue_override": 2**31},
    ],
)
async def test_invalid_updates_are_rejected(client, join, payload):
    entry = (await join(role="vendor", email="v@example.com")).json()
    res = await _update(client, id=entry["id"], **payload)
    assert res.status_code == 400

    row = (await _list(client))["rows"][0]
    assert row["review_status"] == "pending"
    assert row["vendor_queue_override"] is None


@pytest.mark.asyncio
async def test_update_needs_a_known_id(client):
    assert (await _update(client, review_status="approved")).status_code == 400
    res = await _update(client, id="does-not-exist", review_status="approved")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_export_csv(client, join):
    await join(email="c@example.com", full_name="Casey, Consumer")
    await join(
        role="vendor",
        email="v@example.com",
        answers=vendor_answers("11–30", "Partner only (e.g. Uber Eats)", "Yes", top_cuisines=["Thai", "Korean"]),
    )

    res = await client.get("/api/admin/export", headers=ADMIN_HEADERS)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert 'filename="peerplates_waitlist_all.csv"' in res.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(res.text)))
    assert len(rows) == 2
    by_email = {r["email"]: r for r in rows}
    assert by_email["c@example.com"]["full_name"] == "Casey, Consumer"
    assert by_email["c@example.com"]["capacity_points"] == ""
    vendor = by_email["v@example.com"]
    assert vendor["vendor_priority_score"] == "6"
    assert (vendor["capacity_points"], vendor["delivery_points"], vendor["compliance_points"]) == ("2", "1", "3")
    assert vendor["top_cuisines"] == "Thai | Korean"

    res = await client.get("/api/admin/export", params={"role": "vendor"}, headers=ADMIN_HEADERS)
    assert "peerplates_waitlist_vendor.csv" in res.headers["content-disposition"]
    assert len(list(csv.DictReader(io.StringIO(res.text)))) == 1


@pytest.mark.asyncio
async def test_missing_override_column_degrades_gracefully(client, join, engine):
    low = (await join(role="vendor", email="low@example.com", answers=vendor_answers())).json()
    high = (await join(role="vendor", email="high@example.com", answers=vendor_answers("60+", "Yes"))).json()

    async with engine.begin() as conn:
        await conn.exec_driver_sql("ALTER TABLE waitlist_entries DROP COLUMN vendor_queue_override")

    data = await _list(client, role="vendor")
    assert data["degraded"] is True
    assert [r["id"] for r in data["rows"]] == [high["id"], low["id"]]
    assert all(r["vendor_queue_override"] is None for r in data["rows"])

    status = await client.get("/api/queue/status", params={"id": low["id"]})
    assert status.status_code == 200
    assert status.json()["position"] == 2

    export = await client.get("/api/admin/export", headers=ADMIN_HEADERS)
    assert export.status_code == 200
    assert len(list(csv.DictReader(io.StringIO(export.text)))) == 2
