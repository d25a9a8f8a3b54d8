"""
Profile Service

Creates and reads users/<uid>/profile, and resolves a partner by email.

DESIGN DECISION: Partner lookup is a linear scan over all profiles.
The store has no secondary index on email, and households are small.
"""

from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.config import get_settings
from household_store.errors import NotFoundError
from household_store.models import AuditEventBuilder, returns_result
from household_store.models.household import to_iso, utc_now
from household_store.schema import paths
from household_store.store.interface import StoreClient
from household_store.validation import ensure_valid, sanitize

logger = structlog.get_logger(__name__)


class ProfileService:
    """Reads and writes user profiles."""

    def __init__(
        self,
        store: StoreClient,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock or utc_now

    @returns_result
    async def create_profile(
        self,
        uid: str,
        email: str,
        full_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create the profile on first login.

        An existing profile is left untouched and returned as is, so a
        repeated first login is harmless.

        Raises:
            ValidationError: Bad email or name (nothing is written)
        """
        settings = get_settings().maintenance
        now = to_iso(self._clock())
        profile = {
            "uid": uid,
            "email": (email or "").strip().lower(),
            "full_name": full_name or "User",
            "language_preference": settings.default_language,
            "timezone": settings.default_timezone,
            "created_at": now,
            "updated_at": now,
        }
        profile = sanitize(profile)
        ensure_valid("user_profile", profile)

        created = await self._store.create_if_absent(paths.user_profile(uid), profile)
        if not created:
            logger.info("profile_exists", uid=uid)
            return await self.fetch_profile(uid)

        logger.info("profile_created", uid=uid)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.profile_created(uid=uid, email=profile["email"])
            )
        return profile

    @returns_result
    async def get_profile(self, uid: str) -> dict[str, Any]:
        profile = await self.fetch_profile(uid)
        if profile is None:
            raise NotFoundError(f"Profile not found for user {uid}")
        return profile

    @returns_result
    async def find_user_by_email(self, email: str) -> str:
        uid = await self.find_uid_by_email(email)
        if uid is None:
            raise NotFoundError(f"No user with email {email}")
        return uid

    # Raw helpers for the other services (raise instead of returning Result)

    async def fetch_profile(self, uid: str) -> Optional[dict[str, Any]]:
        snapshot = await self._store.read(paths.user_profile(uid))
        return snapshot.value if isinstance(snapshot.value, dict) else None

    async def find_uid_by_email(self, email: str) -> Optional[str]:
        """Case-insensitive scan of every profile. None if nobody matches."""
        wanted = (email or "").strip().lower()
        if not wanted:
            return None

        users = await self._store.read(paths.users_root())
        for uid, user_data in users.child_items():
            if not isinstance(user_data, dict):
                continue
            profile = user_data.get(paths.PROFILE_KEY)
            if not isinstance(profile, dict):
                continue
            stored = profile.get("email")
            if isinstance(stored, str) and stored.strip().lower() == wanted:
                return uid
        return None
