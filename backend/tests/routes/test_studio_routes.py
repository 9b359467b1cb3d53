from app.ratelimit.config import BUCKETS, RouteClass, RoutePolicy

from ..support import at


def _availability(client, studio_id, start="2025-06-03", end="2025-06-03", headers=None):
    return client.get(
        f"/api/v1/studios/{studio_id}/availability",
        params={"start_date": start, "end_date": end},
        headers=headers or {},
    )


def test_availability_is_public(client, studio):
    response = _availability(client, studio.id)

    assert response.status_code == 200
    body = response.json()
    assert body["studio"]["id"] == studio.id
    assert body["studio"]["hourly_rate"] == "50.00"
    assert body["days"][0]["date"] == "2025-06-03"
    assert len(body["days"][0]["slots"]) == 14
    assert body["bookings"] == []


def test_availability_reflects_new_booking(client, auth_headers, studio, renter):
    _availability(client, studio.id)
    client.post(
        "/api/v1/bookings",
        json={"studio_id": studio.id, "start": at(1, 3).isoformat(), "end": at(1, 5).isoformat()},
        headers=auth_headers(renter),
    )

    body = _availability(client, studio.id).json()

    assert len(body["bookings"]) == 1
    assert [s["available"] for s in body["days"][0]["slots"]].count(False) == 2


def test_availability_bad_range(client, studio):
    response = _availability(client, studio.id, start="2025-06-05", end="2025-06-03")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_DATE_RANGE"


def test_availability_unknown_studio(client):
    assert _availability(client, "nope").status_code == 404


def test_slot_check(client, auth_headers, studio, renter):
    client.post(
        "/api/v1/bookings",
        json={"studio_id": studio.id, "start": at(1, 1).isoformat(), "end": at(1, 3).isoformat()},
        headers=auth_headers(renter),
    )
    url = f"/api/v1/studios/{studio.id}/availability"

    free = client.post(url, json={"start": at(1, 3).isoformat(), "end": at(1, 4).isoformat()})
    taken = client.post(url, json={"start": at(1, 2).isoformat(), "end": at(1, 4).isoformat()})

    assert free.json() == {"available": True, "reason": None}
    assert taken.json() == {
        "available": False,
        "reason": "Time slot conflicts with existing booking",
    }


def test_read_budget_is_enforced(client, studio, monkeypatch):
    monkeypatch.setitem(BUCKETS, RouteClass.READ, RoutePolicy(limit=2, window_s=60))

    first = _availability(client, studio.id)
    second = _availability(client, studio.id)
    third = _availability(client, studio.id)

    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert second.status_code == 200
    assert second.headers["X-RateLimit-Remaining"] == "0"
    assert third.status_code == 429
    assert third.headers["Retry-After"] == "60"
    assert third.headers["X-RateLimit-Limit"] == "2"
    assert third.headers["X-RateLimit-Remaining"] == "0"
    assert third.json()["detail"]["code"] == "RATE_LIMIT_EXCEEDED"


def test_budget_resets_after_window(client, studio, clock, monkeypatch):
    monkeypatch.setitem(BUCKETS, RouteClass.READ, RoutePolicy(limit=1, window_s=60))
    assert _availability(client, studio.id).status_code == 200
    assert _availability(client, studio.id).status_code == 429

    clock.advance(seconds=60)

    assert _availability(client, studio.id).status_code == 200


def test_users_have_separate_budgets(client, auth_headers, studio, renter, host, monkeypatch):
    monkeypatch.setitem(BUCKETS, RouteClass.READ, RoutePolicy(limit=1, window_s=60))

    assert _availability(client, studio.id, headers=auth_headers(renter)).status_code == 200
    assert _availability(client, studio.id, headers=auth_headers(host)).status_code == 200
    assert _availability(client, studio.id, headers=auth_headers(renter)).status_code == 429
