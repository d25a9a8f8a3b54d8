"""
Pytest configuration and shared fixtures for Household Store tests.

All tests run against InMemoryStore with a fixed clock. No network.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from household_store.store import InMemoryStore

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def make_profile(uid: str, email: str, **extra: Any) -> dict[str, Any]:
    """A complete, unlinked profile."""
    return {
        "uid": uid,
        "email": email,
        "full_name": uid.upper(),
        "language_preference": "he",
        "created_at": "2024-01-01T00:00:00.000Z",
        "updated_at": "2024-01-01T00:00:00.000Z",
        **extra,
    }


def make_users(
    tasks: Optional[dict[str, Any]] = None,
    **profiles: str,
) -> dict[str, Any]:
    """Initial store data with one profile per uid=email pair."""
    users = {
        uid: {"profile": make_profile(uid, email)}
        for uid, email in profiles.items()
    }
    if tasks:
        first = next(iter(users))
        users[first]["tasks"] = tasks
    return {"users": users}


@pytest.fixture
def clock():
    """Fixed clock at NOW."""
    return FixedClock()


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def couple_store():
    """u1 (a@x.com) with one private task, and u2 (b@x.com)."""
    return InMemoryStore(
        make_users(
            tasks={"t1": {"id": "t1", "title": "Buy milk"}},
            u1="a@x.com",
            u2="b@x.com",
        )
    )
