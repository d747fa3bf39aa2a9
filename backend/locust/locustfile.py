"""
Locust load tests for the seat inventory.

Run scenarios:
  locust -f locustfile.py --tags overbooking   # many passengers, one small ride
  locust -f locustfile.py --tags churn         # book/cancel loops, seats must come back
  locust -f locustfile.py --tags search        # cached ride listing
  locust -f locustfile.py                      # all of the above

After an overbooking run, verify against the database:
  SELECT available_seats, max_passengers FROM rides WHERE id = '<ride>';
  SELECT COALESCE(SUM(passenger_count), 0) FROM bookings
   WHERE ride_id = '<ride>' AND status <> 'cancelled';
The two must add up to max_passengers and available_seats must be >= 0.
"""

import random
import string
from datetime import date, timedelta

from locust import HttpUser, task, between, tag

RIDE_IDS = []
CONTESTED_RIDE_ID = None
CONTESTED_SEATS = 4
PASSWORD = "loadtest-password"


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=10))


class RiderBase(HttpUser):
    abstract = True

    def on_start(self):
        email = random_email()
        self.client.post("/api/v1/auth/register", json={
            "email": email,
            "username": random_username(),
            "password": PASSWORD,
        })
        resp = self.client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        if resp.status_code == 200:
            self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
        else:
            self.headers = {}

    def publish_ride(self, seats: int):
        resp = self.client.post(
            "/api/v1/rides/",
            json={
                "from_location": "Hyderabad",
                "to_location": random.choice(["Vijayawada", "Warangal", "Bengaluru"]),
                "pickup_date": (date.today() + timedelta(days=random.randint(1, 30))).isoformat(),
                "pickup_time": "08:00:00",
                "fare": "450.00",
                "max_passengers": seats,
            },
            headers=self.headers,
        )
        if resp.status_code == 201:
            ride_id = resp.json()["id"]
            RIDE_IDS.append(ride_id)
            return ride_id
        return None


class OverbookingUser(RiderBase):
    """
    Every user fights for the seats of one small ride.

    Run: locust -f locustfile.py --tags overbooking -u 100 -r 50 --run-time 30s
    Expect exactly CONTESTED_SEATS 201s; everything else must be 409.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONTESTED_RIDE_ID
        super().on_start()
        if CONTESTED_RIDE_ID is None and self.headers:
            CONTESTED_RIDE_ID = self.publish_ride(CONTESTED_SEATS)

    @tag("overbooking")
    @task
    def grab_a_seat(self):
        if not CONTESTED_RIDE_ID or not self.headers:
            return
        with self.client.post(
            "/api/v1/bookings/",
            json={"ride_id": CONTESTED_RIDE_ID, "passenger_count": 1, "total_price": "450.00"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ChurnUser(RiderBase):
    """
    Book then cancel on shared rides. Cancels must always hand seats back,
    so the rides never run dry for long.
    """
    wait_time = between(0.1, 0.5)

    @tag("churn")
    @task(3)
    def book_and_cancel(self):
        if not self.headers:
            return
        if not RIDE_IDS:
            self.publish_ride(6)
            return
        resp = self.client.post(
            "/api/v1/bookings/",
            json={
                "ride_id": random.choice(RIDE_IDS),
                "passenger_count": random.randint(1, 2),
                "total_price": "900.00",
            },
            headers=self.headers,
        )
        if resp.status_code != 201:
            return
        booking_id = resp.json()["id"]
        with self.client.post(
            f"/api/v1/bookings/{booking_id}/cancel",
            headers=self.headers,
            name="/api/v1/bookings/{id}/cancel",
            catch_response=True,
        ) as cancel:
            if cancel.status_code == 200:
                cancel.success()
            else:
                cancel.failure(f"Cancel failed: {cancel.status_code}")

    @tag("churn", "edge")
    @task(1)
    def double_cancel_rejected(self):
        if not RIDE_IDS or not self.headers:
            return
        resp = self.client.post(
            "/api/v1/bookings/",
            json={"ride_id": random.choice(RIDE_IDS), "passenger_count": 1, "total_price": "450.00"},
            headers=self.headers,
        )
        if resp.status_code != 201:
            return
        url = f"/api/v1/bookings/{resp.json()['id']}/cancel"
        self.client.post(url, headers=self.headers, name="/api/v1/bookings/{id}/cancel")
        with self.client.post(
            url, headers=self.headers, name="/api/v1/bookings/{id}/cancel [again]", catch_response=True
        ) as again:
            if again.status_code == 400:
                again.success()
            else:
                again.failure(f"Expected 400, got {again.status_code}")


class SearchUser(HttpUser):
    """
    Hammer the cached ride listing; compare runs with REDIS_ENABLED on and off.
    """
    wait_time = between(0.1, 0.5)

    @tag("search")
    @task(10)
    def list_rides(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/rides/?page={page}&page_size=20", name="/api/v1/rides/ [cached]")

    @tag("search")
    @task(3)
    def ride_detail(self):
        if RIDE_IDS:
            self.client.get(f"/api/v1/rides/{random.choice(RIDE_IDS)}", name="/api/v1/rides/{id}")

    @tag("search")
    @task(1)
    def health_check(self):
        self.client.get("/health")
