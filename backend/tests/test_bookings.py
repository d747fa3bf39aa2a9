"""
Tests for booking endpoints: the booking lifecycle from creation through
cancellation, ownership rules and admin-only operations.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from conftest import bearer


async def book(client: AsyncClient, headers: dict, ride_id: str, count: int, price: str = "500.00"):
    return await client.post(
        "/api/v1/bookings/",
        json={"ride_id": ride_id, "passenger_count": count, "total_price": price},
        headers=headers,
    )


async def available(client: AsyncClient, ride_id: str) -> int:
    response = await client.get(f"/api/v1/rides/{ride_id}")
    return response.json()["available_seats"]


@pytest.mark.asyncio
async def test_book_seats(client: AsyncClient, auth_headers, test_user, test_ride):
    """Successful booking decrements available seats."""
    response = await book(client, auth_headers, test_ride.id, 2)
    assert response.status_code == 201
    data = response.json()
    assert data["ride_id"] == test_ride.id
    assert data["user_id"] == test_user.id
    assert data["passenger_count"] == 2
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert Decimal(data["total_price"]) == Decimal("500")

    assert await available(client, test_ride.id) == 2


@pytest.mark.asyncio
async def test_book_seats_unauthenticated(client: AsyncClient, test_ride):
    response = await book(client, {}, test_ride.id, 1)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_more_than_available(client: AsyncClient, auth_headers, other_user, test_ride):
    """Asking for 3 seats when 2 remain is a 409 and changes nothing."""
    assert (await book(client, auth_headers, test_ride.id, 2)).status_code == 201

    response = await book(client, bearer(other_user), test_ride.id, 3, "750.00")
    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "INSUFFICIENT_CAPACITY"
    assert body["details"] == {"ride_id": test_ride.id, "requested": 3, "available": 2}

    assert await available(client, test_ride.id) == 2


@pytest.mark.asyncio
async def test_book_nonexistent_ride(client: AsyncClient, auth_headers):
    response = await book(client, auth_headers, "r_missing", 1, "100.00")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_invalid_passenger_count(client: AsyncClient, auth_headers, test_ride):
    response = await book(client, auth_headers, test_ride.id, 0)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, auth_headers, test_ride):
    """Cancellation restores seats; a second cancel is rejected without restoring again."""
    booking_id = (await book(client, auth_headers, test_ride.id, 2)).json()["id"]
    assert await available(client, test_ride.id) == 2

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert await available(client, test_ride.id) == 4

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_STATE"
    assert await available(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking(client: AsyncClient, auth_headers, other_user, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=bearer(other_user))
    assert response.status_code == 403
    assert await available(client, test_ride.id) == 3


@pytest.mark.asyncio
async def test_admin_can_cancel_any_booking(client: AsyncClient, auth_headers, admin_headers, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_update_booking(client: AsyncClient, auth_headers, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}",
        json={"status": "confirmed", "payment_status": "paid", "passenger_count": 2},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "paid"
    assert data["passenger_count"] == 2
    # passenger_count edits do not touch the ride
    assert await available(client, test_ride.id) == 3


@pytest.mark.asyncio
async def test_update_booking_no_fields(client: AsyncClient, auth_headers, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "NO_FIELDS"


@pytest.mark.asyncio
async def test_update_booking_invalid_status(client: AsyncClient, auth_headers, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}", json={"status": "lost"}, headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_booking_admin_only(client: AsyncClient, auth_headers, admin_headers, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 3)).json()["id"]

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["booking_id"] == booking_id
    assert await available(client, test_ride.id) == 4

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["cancelled", "completed", "no_show"])
async def test_book_with_non_holding_status_rejected(client: AsyncClient, auth_headers, test_ride, status):
    """A new booking cannot start out cancelled or finished; no seats move."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"ride_id": test_ride.id, "passenger_count": 3, "total_price": "750.00", "status": status},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert await available(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_book_confirmed_directly(client: AsyncClient, auth_headers, test_ride):
    response = await client.post(
        "/api/v1/bookings/",
        json={"ride_id": test_ride.id, "passenger_count": 2, "total_price": "500.00", "status": "confirmed"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "confirmed"
    assert response.json()["reserved_seats"] == 2
    assert await available(client, test_ride.id) == 2


@pytest.mark.asyncio
async def test_delete_after_status_edited_to_cancelled(client: AsyncClient, auth_headers, admin_headers, test_ride):
    """Seats held by a booking whose status was edited to cancelled come back on delete."""
    booking_id = (await book(client, auth_headers, test_ride.id, 2)).json()["id"]
    response = await client.put(
        f"/api/v1/bookings/{booking_id}", json={"status": "cancelled"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["reserved_seats"] == 2
    assert await available(client, test_ride.id) == 2

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert response.status_code == 200
    assert await available(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_get_booking_ownership(client: AsyncClient, auth_headers, other_user, test_ride):
    booking_id = (await book(client, auth_headers, test_ride.id, 1)).json()["id"]

    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)).status_code == 200
    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=bearer(other_user))).status_code == 403


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, auth_headers, test_user, test_ride):
    await book(client, auth_headers, test_ride.id, 1)

    response = await client.get("/api/v1/bookings/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["ride_id"] == test_ride.id

    response = await client.get(f"/api/v1/bookings/user/{test_user.id}", headers=auth_headers)
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_list_other_users_bookings_forbidden(client: AsyncClient, auth_headers, other_user):
    response = await client.get(f"/api/v1/bookings/user/{other_user.id}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_list_and_stats(client: AsyncClient, auth_headers, admin_headers, test_ride):
    await book(client, auth_headers, test_ride.id, 1, "100.00")
    await book(client, auth_headers, test_ride.id, 2, "300.00")

    assert (await client.get("/api/v1/bookings/", headers=auth_headers)).status_code == 403

    response = await client.get(
        "/api/v1/bookings/", params={"ride_id": test_ride.id, "limit": 1}, headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert len(data["bookings"]) == 1

    response = await client.get("/api/v1/bookings/stats/overview", headers=admin_headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_bookings"] == 2
    assert stats["pending_bookings"] == 2
    assert Decimal(stats["total_revenue"]) == Decimal("400.00")
