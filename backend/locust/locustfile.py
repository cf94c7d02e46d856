"""
Locust load scenarios

  locust -f locustfile.py --tags concurrency  # many users, 10 seats
  locust -f locustfile.py --tags edge         # malformed booking requests
  locust -f locustfile.py --tags browse       # cached listings
  locust -f locustfile.py                     # everything

All simulated users share one IP, so start the API with a high
RATE_LIMIT_REQUESTS (or REDIS_ENABLED=false) or it will answer 429.

After a concurrency run the ledger must balance:
  SELECT total_seats - available_seats FROM events WHERE id = X
equals
  SELECT COALESCE(SUM(quantity), 0) FROM bookings WHERE event_id = X AND status = 'confirmed'
"""

import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

PASSWORD = "Load#Test123"
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None


def _signup(client) -> dict:
    """Register a throwaway user and return auth headers (empty on failure)."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    email = f"load_{suffix}@example.com"
    resp = client.post("/api/v1/auth/register", json={
        "name": f"Load {suffix}",
        "email": email,
        "password": PASSWORD,
    })
    if resp.status_code != 201:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _future(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


class ConcurrencyUser(HttpUser):
    """
    Every user fights for the same 10 seats.

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s
    Expect 201 until the seats are gone, then only 400 "Not enough seats available".
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_EVENT_ID
        self.headers = _signup(self.client)

        if self.headers and CONCURRENCY_EVENT_ID is None:
            resp = self.client.post("/api/v1/events/", json={
                "title": "Concurrency Test Event",
                "description": "10 seats only",
                "date": _future(30),
                "location": "Load Hall",
                "total_seats": 10,
            }, headers=self.headers)
            if resp.status_code == 201:
                CONCURRENCY_EVENT_ID = resp.json()["id"]

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        if CONCURRENCY_EVENT_ID is None or not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID, "quantity": random.randint(1, 2)},
            headers=self.headers,
            name="/api/v1/bookings/ [contended]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400 and resp.json().get("message") == "Not enough seats available":
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    Bad input must be rejected with 400/401/404, never a 500.

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = _signup(self.client)

    def _expect(self, payload, expected: tuple, headers=None, name="/api/v1/bookings/ [edge]"):
        with self.client.post("/api/v1/bookings/",
            json=payload,
            headers=self.headers if headers is None else headers,
            name=name,
            catch_response=True
        ) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        self._expect({"event_id": 999999, "quantity": 1}, (404,))

    @tag("edge")
    @task
    def zero_quantity(self):
        self._expect({"event_id": 1, "quantity": 0}, (400,))

    @tag("edge")
    @task
    def over_limit_quantity(self):
        self._expect({"event_id": 1, "quantity": 51}, (400,))

    @tag("edge")
    @task
    def missing_fields(self):
        self._expect({}, (400,))

    @tag("edge")
    @task
    def missing_auth(self):
        self._expect({"event_id": 1, "quantity": 1}, (401,), headers={})


class BrowsingUser(HttpUser):
    """
    Mostly reads, occasional bookings.

    Run: locust -f locustfile.py --tags browse -u 200 -r 20 --run-time 120s
    Compare latency with REDIS_ENABLED=true and false.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = _signup(self.client)

    @tag("browse")
    @task(20)
    def browse_events(self):
        resp = self.client.get(f"/api/v1/events/?page={random.randint(1, 3)}&page_size=20",
            name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("browse")
    @task(5)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("browse")
    @task(2)
    def book_seats(self):
        if EVENT_IDS and self.headers:
            self.client.post("/api/v1/bookings/",
                json={"event_id": random.choice(EVENT_IDS), "quantity": random.randint(1, 3)},
                headers=self.headers)

    @tag("browse")
    @task(1)
    def host_event(self):
        if not self.headers:
            return
        resp = self.client.post("/api/v1/events/", json={
            "title": f"Event {random.randint(1, 10000)}",
            "date": _future(random.randint(1, 90)),
            "location": "Venue",
            "price": round(random.uniform(0, 120), 2),
            "total_seats": random.randint(10, 500),
        }, headers=self.headers)
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
