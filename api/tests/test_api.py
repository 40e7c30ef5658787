"""API tests: health, day grid, member booking flow, rules, admin auth, series, sweep."""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from jose import jwt

from app.core.auth import create_access_token, hash_password
from app.core.config import settings
from app.core.database import async_session_factory
from app.models import BookingRule, ReservationKind

API = settings.api_prefix

ANNA = {"first_name": "Anna", "last_name": "Schmidt", "birth_year": 1985}
BERND = {"first_name": "Bernd", "last_name": "Weber", "birth_year": 1972}
CLARA = {"first_name": "Clara", "last_name": "Fischer", "birth_year": 1990}


def _booking(identity=ANNA, **overrides):
    body = {**identity, "court": 1, "date": "2026-06-16", "start_hour": 9, "kind": "full"}
    body.update(overrides)
    return body


async def _book(client, identity=ANNA, **overrides):
    resp = await client.post(f"{API}/bookings", json=_booking(identity, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Day grid
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_day_grid_empty(client):
    resp = await client.get(f"{API}/bookings", params={"date": "2026-06-15"})
    assert resp.status_code == 200
    data = resp.json()

    assert data["courts"] == [1, 2, 3, 4, 5, 6]
    assert data["hours"] == list(range(8, 22))
    assert len(data["slots"]) == 6 * 14

    # now is 10:00, so the 10:00 slot has started
    by_hour = {s["hour"]: s for s in data["slots"] if s["court"] == 1}
    assert by_hour[10]["is_past"] is True
    assert by_hour[10]["is_available"] is False
    assert by_hour[11]["is_available"] is True


@pytest.mark.asyncio
async def test_day_grid_anonymises_names(client, members, add_reservation):
    await add_reservation(
        2, date(2026, 6, 16), 9, kind=ReservationKind.HALF, identity=members["anna"], booker_comment="Anyone?"
    )

    resp = await client.get(f"{API}/bookings", params={"date": "2026-06-16"})
    slot = next(s for s in resp.json()["slots"] if s["court"] == 2 and s["hour"] == 9)

    assert slot["is_available"] is False
    assert slot["booking"]["booker"] == "A***"
    assert slot["booking"]["kind"] == "half"
    assert slot["booking"]["comment"] == "Anyone?"
    assert "Schmidt" not in resp.text


# ---------------------------------------------------------------------------
# Member booking flow
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_booking(client, members):
    data = await _book(client)
    assert data["kind"] == "full"
    assert data["court"] == 1
    assert data["is_joined"] is False


@pytest.mark.asyncio
async def test_create_booking_errors(client, members):
    await _book(client)

    resp = await client.post(f"{API}/bookings", json=_booking(BERND))
    assert resp.status_code == 409
    assert resp.json()["detail"][0]["rule"] == "slot_taken"

    resp = await client.post(f"{API}/bookings", json=_booking(date="2026-06-17", start_hour=12))
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "booking_window"

    resp = await client.post(f"{API}/bookings", json=_booking({**ANNA, "birth_year": 1999}, court=2))
    assert resp.status_code == 403
    assert resp.json()["detail"][0]["rule"] == "not_a_member"

    resp = await client.post(f"{API}/bookings", json=_booking(court=9))
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "invalid_slot"

    resp = await client.post(f"{API}/bookings", json=_booking(kind="special"))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_core_time_limit_via_api(client, members):
    await _book(client, date="2026-06-15", start_hour=17)

    resp = await client.post(f"{API}/bookings", json=_booking(date="2026-06-15", start_hour=18))
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "core_time_limit"

    await _book(client, date="2026-06-15", start_hour=18, kind="double", double_match_names="Tom, Tim")


@pytest.mark.asyncio
async def test_rate_limit(client, members):
    for court in (1, 2, 3):
        await _book(client, court=court)

    resp = await client.post(f"{API}/bookings", json=_booking(court=4))
    assert resp.status_code == 429
    assert resp.json()["detail"][0]["rule"] == "rate_limited"

    resp = await client.post(
        f"{API}/bookings", json=_booking(court=4), headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
@patch("app.services.notifications.send_email", new_callable=AsyncMock)
async def test_join_flow(mock_send, client, members):
    half = await _book(client, kind="half", email="anna@example.com", comment="Looking for a partner")

    resp = await client.post(f"{API}/bookings/{half['id']}/join", json=ANNA)
    assert resp.status_code == 400
    assert resp.json()["detail"][0]["rule"] == "own_booking"

    resp = await client.post(f"{API}/bookings/{half['id']}/join", json={**BERND, "comment": "Count me in"})
    assert resp.status_code == 200
    assert resp.json()["kind"] == "full"
    assert resp.json()["is_joined"] is True

    resp = await client.post(f"{API}/bookings/{half['id']}/join", json=CLARA)
    assert resp.status_code == 409
    assert resp.json()["detail"][0]["rule"] == "not_joinable"

    # Notifications are off by default
    mock_send.assert_not_awaited()


@pytest.mark.asyncio
@patch("app.services.notifications.send_email", new_callable=AsyncMock)
async def test_join_notifies_booker_when_enabled(mock_send, client, members):
    async with async_session_factory() as db:
        db.add(BookingRule(key="email_notifications_enabled", value="true"))
        await db.commit()

    half = await _book(client, kind="half", email="anna@example.com")
    resp = await client.post(f"{API}/bookings/{half['id']}/join", json=BERND)
    assert resp.status_code == 200

    mock_send.assert_awaited_once()
    to, subject, body = mock_send.await_args.args
    assert to == "anna@example.com"
    assert "Bernd Weber" in body


@pytest.mark.asyncio
async def test_cancel_joined_booking_needs_confirmation(client, members):
    half = await _book(client, kind="half")
    await client.post(f"{API}/bookings/{half['id']}/join", json=BERND)

    resp = await client.post(f"{API}/bookings/{half['id']}/cancel", json=BERND)
    assert resp.status_code == 403

    resp = await client.post(f"{API}/bookings/{half['id']}/cancel", json=ANNA)
    assert resp.status_code == 409
    assert resp.json()["detail"][0]["rule"] == "confirmation_required"

    resp = await client.post(f"{API}/bookings/{half['id']}/cancel", json={**ANNA, "confirmed": True})
    assert resp.status_code == 204

    resp = await client.post(f"{API}/bookings/{half['id']}/cancel", json=ANNA)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_comment_and_info(client, members):
    half = await _book(client, kind="half", comment="Any level")

    resp = await client.patch(f"{API}/bookings/{half['id']}/comment", json={**ANNA, "comment": "Intermediate"})
    assert resp.status_code == 200
    assert resp.json()["booker_comment"] == "Intermediate"

    resp = await client.patch(f"{API}/bookings/{half['id']}/comment", json={**BERND, "comment": "x"})
    assert resp.status_code == 403

    await client.post(f"{API}/bookings/{half['id']}/join", json={**BERND, "comment": "Bring balls"})

    resp = await client.post(f"{API}/bookings/{half['id']}/info", json=BERND)
    assert resp.status_code == 200
    assert resp.json() == {
        "id": half["id"],
        "booker_name": "Anna Schmidt",
        "booker_comment": "Intermediate",
        "partner_name": "Bernd Weber",
        "partner_comment": "Bring balls",
    }

    resp = await client.post(f"{API}/bookings/{half['id']}/info", json=CLARA)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_public_rules(client):
    resp = await client.get(f"{API}/rules")
    assert resp.status_code == 200
    data = resp.json()
    assert data["booking_window_hours"] == 24
    assert data["core_time_days"] == [1, 2, 3, 4, 5]
    assert "email_notifications_enabled" not in data


# ---------------------------------------------------------------------------
# Admin auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_login(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_password_hash", hash_password("s3cret"))

    resp = await client.post(f"{API}/admin/login", json={"email": settings.admin_email, "password": "wrong"})
    assert resp.status_code == 401

    resp = await client.post(f"{API}/admin/login", json={"email": settings.admin_email, "password": "s3cret"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    assert payload["role"] == "admin"


@pytest.mark.asyncio
async def test_admin_login_disabled_without_password(client):
    resp = await client.post(f"{API}/admin/login", json={"email": settings.admin_email, "password": ""})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_require_admin_token(client):
    resp = await client.get(f"{API}/admin/rules")
    assert resp.status_code == 401

    resp = await client.get(f"{API}/admin/rules", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401

    token = create_access_token("someone@example.com")
    resp = await client.get(f"{API}/admin/rules", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Admin rules and reservations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_rules(client, admin_headers):
    resp = await client.get(f"{API}/admin/rules", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.json()) == 16

    resp = await client.put(f"{API}/admin/rules/courts_count", json={"value": "4"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["value"] == "4"

    resp = await client.put(f"{API}/admin/rules/courts_count", json={"value": "four"}, headers=admin_headers)
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "invalid_rule"

    resp = await client.get(f"{API}/bookings", params={"date": "2026-06-16"})
    assert resp.json()["courts"] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_admin_reservations(client, members, admin_headers):
    await _book(client, kind="double", double_match_names="Tom, Tim")

    resp = await client.get(f"{API}/admin/reservations", params={"date": "2026-06-16"}, headers=admin_headers)
    assert resp.status_code == 200
    [reservation] = resp.json()
    assert reservation["booker_last_name"] == "Schmidt"
    assert reservation["double_match_names"] == "Tom, Tim"
    assert reservation["created_by_ip"] == "127.0.0.1"

    resp = await client.delete(f"{API}/admin/reservations/{reservation['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["series_id"] is None

    resp = await client.delete(f"{API}/admin/reservations/{reservation['id']}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_reservations_over_a_range(client, members, admin_headers, add_reservation):
    await add_reservation(1, date(2026, 6, 16), 9, identity=members["anna"])
    await add_reservation(2, date(2026, 6, 18), 10, identity=members["bernd"])
    await add_reservation(3, date(2026, 6, 20), 11, identity=members["clara"])

    resp = await client.get(
        f"{API}/admin/reservations", params={"start": "2026-06-16", "end": "2026-06-18"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert [r["date"] for r in resp.json()] == ["2026-06-16", "2026-06-18"]

    resp = await client.get(f"{API}/admin/reservations", params={"start": "2026-06-16"}, headers=admin_headers)
    assert resp.status_code == 422
    resp = await client.get(
        f"{API}/admin/reservations", params={"start": "2026-06-18", "end": "2026-06-16"}, headers=admin_headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_admin_edits_single_reservation(client, members, admin_headers, add_reservation):
    booking = await add_reservation(
        1, date(2026, 6, 16), 9, kind=ReservationKind.HALF, identity=members["anna"], booker_comment="Any level"
    )

    resp = await client.patch(
        f"{API}/admin/reservations/{booking.id}",
        json={"booker_last_name": "Schmidt-Weber", "booker_comment": "  ", "special_label": "Turnier"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["booker_last_name"] == "Schmidt-Weber"
    assert data["booker_first_name"] == "Anna"
    assert data["booker_comment"] is None
    assert data["special_label"] == "Turnier"
    assert (data["court"], data["start_hour"], data["kind"]) == (1, 9, "half")

    resp = await client.patch(
        f"{API}/admin/reservations/{booking.id}", json={"booker_first_name": " "}, headers=admin_headers
    )
    assert resp.status_code == 422

    resp = await client.patch(f"{API}/admin/reservations/missing", json={}, headers=admin_headers)
    assert resp.status_code == 404

    resp = await client.patch(f"{API}/admin/reservations/{booking.id}", json={})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

WEEKLY = {
    "mode": "weekly",
    "start_date": "2026-06-01",
    "end_date": "2026-06-30",
    "weekdays": [2],
    "courts": [1],
    "hours": [9],
    "label": "Abo",
}


@pytest.mark.asyncio
async def test_series_lifecycle(client, members, admin_headers):
    resp = await client.post(f"{API}/admin/series/preview", json={"spec": WEEKLY}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["count"] == 5
    assert resp.json()["conflicts"] == []

    resp = await client.post(f"{API}/admin/series", json={"spec": WEEKLY}, headers=admin_headers)
    assert resp.status_code == 201
    series_id = resp.json()["series_id"]
    assert resp.json()["created"] == 5

    resp = await client.get(f"{API}/admin/series", headers=admin_headers)
    assert [s["series_id"] for s in resp.json()] == [series_id]

    resp = await client.get(f"{API}/admin/series/{series_id}/spec", headers=admin_headers)
    assert resp.json()["mode"] == "weekly"
    assert resp.json()["hours"] == [9]

    # Members see the label, not a name
    resp = await client.get(f"{API}/bookings", params={"date": "2026-06-16"})
    slot = next(s for s in resp.json()["slots"] if s["court"] == 1 and s["hour"] == 9)
    assert slot["booking"]["label"] == "Abo"
    assert slot["booking"]["booker"] is None

    # Deleting one occurrence keeps the rest and says so
    resp = await client.get(f"{API}/admin/reservations", params={"date": "2026-06-16"}, headers=admin_headers)
    occurrence = resp.json()[0]["id"]
    resp = await client.delete(f"{API}/admin/reservations/{occurrence}", headers=admin_headers)
    assert resp.json()["series_id"] == series_id
    assert resp.json()["warning"]

    resp = await client.delete(f"{API}/admin/series/{series_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["deleted"] == 4


@pytest.mark.asyncio
async def test_series_conflict_lists_member_bookings(client, members, admin_headers):
    booking = await _book(client)

    resp = await client.post(f"{API}/admin/series", json={"spec": WEEKLY}, headers=admin_headers)
    assert resp.status_code == 409
    data = resp.json()
    assert data["detail"][0]["rule"] == "series_conflict"
    assert [c["id"] for c in data["conflicts"]] == [booking["id"]]
    assert data["conflicts"][0]["date"] == "2026-06-16"

    resp = await client.post(
        f"{API}/admin/series", json={"spec": WEEKLY, "overwrite": True}, headers=admin_headers
    )
    assert resp.status_code == 201
    assert resp.json()["deleted"] == 1


@pytest.mark.asyncio
async def test_series_invalid_spec(client, admin_headers):
    spec = {**WEEKLY, "courts": []}
    resp = await client.post(f"{API}/admin/series", json={"spec": spec}, headers=admin_headers)
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "invalid_spec"


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_sweep(client, members, admin_headers, add_reservation, now):
    await add_reservation(1, now.date(), 20, kind=ReservationKind.HALF, identity=members["anna"])

    resp = await client.post(f"{API}/admin/sweep", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 1, "notified": 0}

    resp = await client.post(f"{API}/admin/sweep", headers=admin_headers)
    assert resp.json() == {"deleted": 0, "notified": 0}
