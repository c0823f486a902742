"""Tests for the /api/bookings endpoints."""

import pytest

from tests.mocks.models import MONDAY, SATURDAY, SUNDAY

TUESDAY = "2026-03-03"


@pytest.fixture()
def book(client, turf, player):
    """Factory: POST a booking on ``turf`` as ``player`` (or given headers)."""

    def _book(start: str, end: str, date: str = MONDAY, headers: dict | None = None):
        return client.post(
            "/api/bookings",
            json={
                "turf_id": turf["id"],
                "date": date,
                "start_time": start,
                "end_time": end,
                "total_players": 10,
                "payment_method": "cash",
            },
            headers=headers or player["headers"],
        )

    return _book


class TestCreateBooking:
    def test_weekday_booking(self, book, player):
        resp = book("18:00", "19:30")
        assert resp.status_code == 201
        data = resp.json()
        assert data["user_id"] == player["user"]["id"]
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["total_amount"] == 1200

    def test_sunday_uses_weekend_rate(self, book):
        resp = book("09:00", "11:00", date=SUNDAY)
        assert resp.status_code == 201
        assert resp.json()["total_amount"] == 2000

    def test_overlap_conflicts(self, book, register):
        assert book("14:00", "15:00").status_code == 201
        other = register("user")
        resp = book("13:30", "14:30", headers=other["headers"])
        assert resp.status_code == 409
        assert resp.json()["code"] == "slot_unavailable"
        assert resp.json()["detail"] == "Time slot not available"

    def test_back_to_back_allowed(self, book):
        assert book("14:00", "15:00").status_code == 201
        assert book("15:00", "16:00").status_code == 201

    def test_end_before_start(self, book):
        resp = book("15:00", "14:00")
        assert resp.status_code == 422
        assert resp.json()["code"] == "invalid_interval"

    def test_outside_opening_hours(self, book):
        assert book("11:00", "13:00", date=SUNDAY).status_code == 422
        assert book("10:00", "11:00", date=TUESDAY).status_code == 422

    def test_day_without_hours_uses_default_window(self, book):
        assert book("06:00", "07:00", date=SATURDAY).status_code == 201
        assert book("05:00", "06:00", date=SATURDAY).status_code == 422

    def test_malformed_time(self, book):
        assert book("9:00", "10:00").status_code == 422

    def test_unknown_turf(self, client, player):
        resp = client.post(
            "/api/bookings",
            json={
                "turf_id": "nope",
                "date": MONDAY,
                "start_time": "10:00",
                "end_time": "11:00",
                "total_players": 4,
            },
            headers=player["headers"],
        )
        assert resp.status_code == 404

    def test_requires_auth(self, client, turf):
        resp = client.post(
            "/api/bookings",
            json={
                "turf_id": turf["id"],
                "date": MONDAY,
                "start_time": "10:00",
                "end_time": "11:00",
                "total_players": 4,
            },
        )
        assert resp.status_code == 401


class TestAvailableSlots:
    def test_slots_exclude_bookings(self, client, turf, book):
        book("08:00", "09:00", date=SUNDAY)
        book("10:30", "11:30", date=SUNDAY)
        resp = client.get(
            f"/api/bookings/turf/{turf['id']}/available-slots", params={"date": SUNDAY}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["date"] == SUNDAY
        assert [(s["start_time"], s["end_time"]) for s in data["slots"]] == [
            ("09:00", "10:00"),
        ]

    def test_closed_day_has_no_slots(self, client, turf):
        resp = client.get(
            f"/api/bookings/turf/{turf['id']}/available-slots", params={"date": TUESDAY}
        )
        assert resp.json()["slots"] == []

    def test_full_weekday(self, client, turf):
        resp = client.get(
            f"/api/bookings/turf/{turf['id']}/available-slots", params={"date": MONDAY}
        )
        slots = resp.json()["slots"]
        assert len(slots) == 17
        assert slots[0]["start_time"] == "06:00"
        assert slots[-1]["end_time"] == "23:00"

    def test_every_listed_slot_can_be_booked(self, client, turf, book):
        book("12:00", "13:30")
        url = f"/api/bookings/turf/{turf['id']}/available-slots"
        resp = client.get(url, params={"date": MONDAY})
        for slot in resp.json()["slots"]:
            assert book(slot["start_time"], slot["end_time"]).status_code == 201

        assert client.get(url, params={"date": MONDAY}).json()["slots"] == []

    def test_bad_date(self, client, turf):
        resp = client.get(
            f"/api/bookings/turf/{turf['id']}/available-slots", params={"date": "03/01/2026"}
        )
        assert resp.status_code == 422

    def test_date_required(self, client, turf):
        resp = client.get(f"/api/bookings/turf/{turf['id']}/available-slots")
        assert resp.status_code == 422


class TestBookingAccess:
    def test_my_bookings(self, client, book, player):
        book("10:00", "11:00")
        book("12:00", "13:00")
        resp = client.get("/api/bookings/my-bookings", headers=player["headers"])
        assert resp.status_code == 200
        assert len(resp.json()) == 2

        resp = client.get(
            "/api/bookings/my-bookings", params={"status": "confirmed"}, headers=player["headers"]
        )
        assert resp.json() == []

    def test_get_booking_visibility(self, client, book, owner, register):
        booking = book("10:00", "11:00").json()
        url = f"/api/bookings/{booking['id']}"

        assert client.get(url, headers=owner["headers"]).status_code == 200
        stranger = register("user")
        assert client.get(url, headers=stranger["headers"]).status_code == 403
        assert client.get("/api/bookings/nope", headers=owner["headers"]).status_code == 404

    def test_turf_bookings_for_owner_only(self, client, turf, book, owner, player):
        book("10:00", "11:00")
        url = f"/api/bookings/turf/{turf['id']}"
        assert len(client.get(url, headers=owner["headers"]).json()) == 1
        assert client.get(url, headers=player["headers"]).status_code == 403


class TestBookingStatus:
    def test_owner_confirms(self, client, book, owner):
        booking = book("10:00", "11:00").json()
        resp = client.patch(
            f"/api/bookings/{booking['id']}/status",
            json={"status": "confirmed", "payment_status": "paid"},
            headers=owner["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["payment_status"] == "paid"

    def test_booker_may_cancel_only(self, client, book, player):
        booking = book("10:00", "11:00").json()
        url = f"/api/bookings/{booking['id']}/status"
        assert client.patch(url, json={"status": "confirmed"}, headers=player["headers"]).status_code == 403
        resp = client.patch(url, json={"status": "cancelled"}, headers=player["headers"])
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

    def test_cancel_frees_slot(self, client, book, player, register):
        booking = book("10:00", "11:00").json()
        client.patch(
            f"/api/bookings/{booking['id']}/status",
            json={"status": "cancelled"},
            headers=player["headers"],
        )
        other = register("user")
        assert book("10:00", "11:00", headers=other["headers"]).status_code == 201

    def test_reactivating_taken_slot_conflicts(self, client, book, player, owner, register):
        booking = book("10:00", "11:00").json()
        url = f"/api/bookings/{booking['id']}/status"
        client.patch(url, json={"status": "cancelled"}, headers=player["headers"])
        other = register("user")
        book("10:00", "11:00", headers=other["headers"])

        resp = client.patch(url, json={"status": "confirmed"}, headers=owner["headers"])
        assert resp.status_code == 409

    def test_invalid_status(self, client, book, owner):
        booking = book("10:00", "11:00").json()
        resp = client.patch(
            f"/api/bookings/{booking['id']}/status",
            json={"status": "teleported"},
            headers=owner["headers"],
        )
        assert resp.status_code == 422

    def test_stats(self, client, turf, book, owner):
        first = book("10:00", "11:00").json()
        book("11:00", "12:00")
        client.patch(
            f"/api/bookings/{first['id']}/status",
            json={"status": "completed"},
            headers=owner["headers"],
        )
        resp = client.get(f"/api/bookings/turf/{turf['id']}/stats", headers=owner["headers"])
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total_bookings"] == 2
        assert stats["total_revenue"] == 800
        assert stats["avg_booking_value"] == 800
