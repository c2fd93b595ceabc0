"""
Locust Load Test Suite

Tokens are signed locally with the API's SECRET_KEY, so the member and
admin ids below must exist in the target database:

  LOAD_ADMIN_ID=1 LOAD_MEMBER_IDS=2-301 LOAD_GROUP_ID=1 locust -f locustfile.py

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking and credit races
  locust -f locustfile.py --tags throughput   # Test day schedule cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import os
import random
import threading
from datetime import datetime, timedelta, timezone

from locust import HttpUser, task, between, tag, events

from club_booking.core.security import encode_token
from club_booking.models.enums import MemberRole

ADMIN_ID = int(os.environ.get("LOAD_ADMIN_ID", "1"))
GROUP_ID = int(os.environ.get("LOAD_GROUP_ID", "1"))
CATEGORY = os.environ.get("LOAD_CATEGORY", "TRAINING_ALL")
CONCURRENCY_SLOTS = 10


def _member_ids() -> list[int]:
    first, _, last = os.environ.get("LOAD_MEMBER_IDS", "2-301").partition("-")
    return list(range(int(first), int(last or first) + 1))


MEMBER_IDS = itertools.cycle(_member_ids())
_member_lock = threading.Lock()

# Shared state
EVENT_DAY = (datetime.now(timezone.utc) + timedelta(days=7)).date()
CONCURRENCY_EVENT_ID = None


def admin_headers() -> dict:
    return {"Authorization": f"Bearer {encode_token(ADMIN_ID, MemberRole.ADMIN, expires_minutes=240)}"}


def next_member_headers() -> tuple[int, dict]:
    with _member_lock:
        member_id = next(MEMBER_IDS)
    return member_id, {"Authorization": f"Bearer {encode_token(member_id, expires_minutes=240)}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: members {os.environ.get('LOAD_MEMBER_IDS', '2-301')}, category {CATEGORY}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 members → 10 slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT booked_slots, (SELECT COUNT(*) FROM signups WHERE event_id = X)
      FROM events WHERE id = X;
    Both should be equal and ≤ 10.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.member_id, self.headers = next_member_headers()

        # One fresh ACTIVE subscription per member (supersedes any previous one)
        now = datetime.now(timezone.utc)
        self.client.post(
            "/api/v1/admin/subscriptions",
            json={
                "member_id": self.member_id,
                "start_date": (now - timedelta(days=1)).isoformat(),
                "end_date": (now + timedelta(days=30)).isoformat(),
                "amount": "50.00",
                "credits": 4,
                "group_ids": [GROUP_ID],
            },
            headers=admin_headers(),
            name="/api/v1/admin/subscriptions [setup]",
        )

        if not CONCURRENCY_EVENT_ID:
            resp = self.client.post(
                "/api/v1/admin/events",
                json={
                    "title": "Concurrency Test Session",
                    "description": f"{CONCURRENCY_SLOTS} slots only",
                    "date": EVENT_DAY.isoformat(),
                    "start_time": "19:00:00",
                    "end_time": "20:00:00",
                    "location": "Load pool",
                    "max_slots": CONCURRENCY_SLOTS,
                    "category_code": CATEGORY,
                },
                headers=admin_headers(),
                name="/api/v1/admin/events [setup]",
            )
            if resp.status_code == 201:
                globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                print(f"\n✓ Created event {CONCURRENCY_EVENT_ID} with {CONCURRENCY_SLOTS} slots\n")

    @tag("concurrency")
    @task(5)
    def book_limited_slots(self):
        """All members fight for the same 10 slots."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409 and resp.json().get("code") in ("EVENT_FULL", "ALREADY_BOOKED"):
                resp.success()  # Expected: full or already in
            elif resp.status_code == 503:
                resp.success()  # Transient: client retries later
            else:
                resp.failure(f"Unexpected: {resp.status_code} {resp.text[:80]}")

    @tag("concurrency")
    @task(1)
    def cancel_and_release(self):
        """Cancellations free slots that other members immediately race for."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.delete(
            f"/api/v1/bookings/{CONCURRENCY_EVENT_ID}",
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings/{event_id}",
        ) as resp:
            if resp.status_code in (200, 404, 503):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def check_capacity(self):
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.get(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}",
            headers=self.headers,
            catch_response=True,
            name="/api/v1/events/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
            elif not 0 <= resp.json()["booked_slots"] <= CONCURRENCY_SLOTS:
                resp.failure(f"Overbooked: {resp.json()['booked_slots']}/{CONCURRENCY_SLOTS}")
            else:
                resp.success()


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Day schedule cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.member_id, self.headers = next_member_headers()

    @tag("throughput", "read")
    @task(10)
    def day_schedule(self):
        """Hammer the cached endpoint."""
        day = EVENT_DAY + timedelta(days=random.randint(-3, 3))
        self.client.get(
            f"/api/v1/events/day?day={day.isoformat()}",
            headers=self.headers,
            name="/api/v1/events/day [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def my_tiers(self):
        self.client.get("/api/v1/members/me/tiers", headers=self.headers)

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.member_id, self.headers = next_member_headers()

    def _expect(self, resp, *codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        """Book non-existent event."""
        with self.client.post("/api/v1/bookings/", json={"event_id": 999999},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, 404)

    @tag("edge")
    @task
    def cancel_without_booking(self):
        with self.client.delete("/api/v1/bookings/999999", headers=self.headers,
                                catch_response=True, name="/api/v1/bookings/{event_id}") as resp:
            self._expect(resp, 404)

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/", data="not json at all",
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, 400, 422)

    @tag("edge")
    @task
    def bad_day(self):
        with self.client.get("/api/v1/events/day?day=not-a-date", headers=self.headers,
                             catch_response=True, name="/api/v1/events/day [bad]") as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/", json={"event_id": 1}, catch_response=True) as resp:
            self._expect(resp, 401)

    @tag("edge")
    @task
    def member_on_admin_route(self):
        with self.client.post("/api/v1/admin/subscriptions/expire", headers=self.headers,
                              catch_response=True) as resp:
            self._expect(resp, 403)
