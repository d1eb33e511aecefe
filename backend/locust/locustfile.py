"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Hammer one small event
  locust -f locustfile.py --tags throughput   # Listing and stats reads
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import uuid

import requests
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

CONCURRENCY_CAPACITY = 10
CONCURRENCY_EVENT_ID = None


def unique_email() -> str:
    return f"load_{uuid.uuid4().hex[:12]}@test.com"


def future_iso(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Create the small-capacity event every ConcurrencyUser competes for."""
    global CONCURRENCY_EVENT_ID
    if environment.host is None:
        return
    resp = requests.post(f"{environment.host}/api/events", timeout=10, json={
        "title": "Concurrency Test",
        "datetime": future_iso(),
        "location": "Load Hall",
        "capacity": CONCURRENCY_CAPACITY,
    })
    if resp.status_code == 201:
        CONCURRENCY_EVENT_ID = resp.json()["eventId"]


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """
    After the run, totalRegistrations must be <= CONCURRENCY_CAPACITY.
    Anything above it is an overbooking bug.
    """
    if CONCURRENCY_EVENT_ID is None or environment.host is None:
        return
    stats = requests.get(
        f"{environment.host}/api/events/{CONCURRENCY_EVENT_ID}/stats", timeout=10
    ).json()
    total = stats.get("totalRegistrations")
    verdict = "OK" if total is not None and total <= CONCURRENCY_CAPACITY else "OVERBOOKED"
    print(f"\nconcurrency event {CONCURRENCY_EVENT_ID}: {total}/{CONCURRENCY_CAPACITY} [{verdict}]")


class ConcurrencyUser(HttpUser):
    """
    Many distinct attendees racing for CONCURRENCY_CAPACITY places.

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s
    Expected: exactly CONCURRENCY_CAPACITY 201s, the rest 409 capacity_exceeded.
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def register(self):
        if CONCURRENCY_EVENT_ID is None:
            return
        with self.client.post(
            f"/api/events/{CONCURRENCY_EVENT_ID}/register",
            json={"name": "Load Tester", "email": unique_email()},
            name="/api/events/[id]/register",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"unexpected status {resp.status_code}")


class BrowsingUser(HttpUser):
    """Read-heavy traffic: cached listing plus live stats."""
    wait_time = between(0.1, 0.5)

    def on_start(self):
        resp = self.client.post("/api/events", json={
            "title": "Throughput Test",
            "datetime": future_iso(60),
            "location": "Main Stage",
            "capacity": 1000,
        })
        self.event_id = resp.json().get("eventId") if resp.status_code == 201 else None

    @tag("throughput")
    @task(5)
    def list_events(self):
        self.client.get("/api/events")

    @tag("throughput")
    @task(2)
    def stats(self):
        if self.event_id:
            self.client.get(f"/api/events/{self.event_id}/stats", name="/api/events/[id]/stats")

    @tag("throughput")
    @task(1)
    def register_and_cancel(self):
        if not self.event_id:
            return
        email = unique_email()
        self.client.post(
            f"/api/events/{self.event_id}/register",
            json={"name": "Browser", "email": email},
            name="/api/events/[id]/register",
        )
        self.client.post(
            f"/api/events/{self.event_id}/cancel",
            json={"email": email},
            name="/api/events/[id]/cancel",
        )


class EdgeCaseUser(HttpUser):
    """Invalid requests must come back as 400/404, never 5xx."""
    wait_time = between(0.5, 1)

    def _expect(self, resp, expected):
        if resp.status_code in expected:
            resp.success()
        else:
            resp.failure(f"expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def capacity_out_of_range(self):
        with self.client.post("/api/events", json={
            "title": "Too Big", "datetime": future_iso(), "location": "X", "capacity": 1001,
        }, catch_response=True) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def bad_email(self):
        with self.client.post(
            "/api/events/1/register",
            json={"name": "Bad", "email": "not-an-email"},
            name="/api/events/[id]/register",
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def missing_event(self):
        with self.client.get(
            "/api/events/999999999/stats", name="/api/events/[id]/stats", catch_response=True,
        ) as resp:
            self._expect(resp, (404,))
