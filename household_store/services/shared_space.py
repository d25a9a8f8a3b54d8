"""
Shared-Space Manager

Links two users into one shared space and dissolves it again.

DESIGN DECISION: Linking is a saga with a persisted marker.
The store has no transaction spanning several calls, so each step is
one atomic multi-path update that also advances the marker on the
space root:

    create_if_absent(root, state=created)
        -> atomic(both profiles + state=profiles_updated)
        -> atomic(copied records + state=data_migrated)

A crash between steps leaves a root whose migration_state says exactly
which step comes next. resume_link() continues from there and
rollback_link() undoes the half-done link. Because the root is claimed
with a conditional write, two concurrent link calls for the same pair
cannot both run the saga.

Only the caller's private records are copied into the space, and the
private copies are kept. Unlinking copies everything the space holds
(all four record partitions and the shopping sessions) back to the caller only.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from household_store.audit import AuditLogger
from household_store.errors import (
    AlreadyLinkedError,
    HouseholdStoreError,
    LinkConflictError,
    NotFoundError,
    NotLinkedError,
    SelfLinkError,
    ValidationError,
)
from household_store.models import (
    SHARED_PARTITIONS,
    AuditEventBuilder,
    LinkOutcome,
    MigrationState,
    PartitionKind,
    SharedSpace,
    SharingStatus,
    UnlinkOutcome,
    returns_result,
)
from household_store.models.household import to_iso, utc_now
from household_store.schema import paths
from household_store.services.profiles import ProfileService
from household_store.store.interface import StoreClient, as_record_map

logger = structlog.get_logger(__name__)

# Profile fields that describe a link
LINK_FIELDS = ("shared_space_id", "sharing_with", "partner_email")

# Partitions handed back to the caller on unlink
RESTORED_PARTITIONS = SHARED_PARTITIONS + (PartitionKind.EVENTS,)


class SharedSpaceManager:
    """Link, unlink and recover shared spaces."""

    def __init__(
        self,
        store: StoreClient,
        profiles: Optional[ProfileService] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or utc_now
        self._profiles = profiles or ProfileService(store, audit_logger, self._clock)
        self._audit_logger = audit_logger

    # =========================================================================
    # LINK
    # =========================================================================

    @returns_result
    async def link_partner(self, self_uid: str, partner_email: str) -> LinkOutcome:
        """
        Link the caller with the user registered under partner_email.

        Returns:
            LinkOutcome with the space id and how many records were copied

        Raises:
            NotFoundError: Caller has no profile, or nobody has that email
            SelfLinkError: The email is the caller's own
            AlreadyLinkedError: Already linked (to this partner or another)
            LinkConflictError: The partner's own link for this pair is in flight
        """
        email = (partner_email or "").strip().lower()

        own = await self._profiles.fetch_profile(self_uid)
        if own is None:
            raise NotFoundError(f"Profile not found for user {self_uid}")

        partner_uid = await self._profiles.find_uid_by_email(email)
        if partner_uid is None:
            raise NotFoundError(f"No user registered with email {partner_email}")
        if partner_uid == self_uid:
            raise SelfLinkError("You cannot link with your own account")

        space_id = paths.shared_space_id(self_uid, partner_uid)

        # Past step one the profiles already carry the link; finish the saga
        if own.get("shared_space_id") == space_id:
            existing = await self._load_space(space_id)
            if existing is not None and not existing.is_complete:
                if existing.initiated_by != self_uid:
                    raise LinkConflictError(
                        f"{email} is already linking with you, try again shortly"
                    )
                logger.info(
                    "link_resuming",
                    space_id=space_id,
                    state=existing.migration_state.value,
                )
                return await self._advance(existing, resumed=True)

        if (own.get("partner_email") or "").lower() == email:
            raise AlreadyLinkedError(f"Already linked with {email}")

        partner = await self._profiles.fetch_profile(partner_uid) or {}
        if own.get("shared_space_id") and own["shared_space_id"] != space_id:
            raise AlreadyLinkedError("You are already sharing with another partner")
        if partner.get("shared_space_id") and partner["shared_space_id"] != space_id:
            raise AlreadyLinkedError(f"{email} is already sharing with someone else")

        now = to_iso(self._clock())
        space = SharedSpace(
            id=space_id,
            members={self_uid: True, partner_uid: True},
            created_at=now,
            updated_at=now,
            migration_state=MigrationState.CREATED,
            initiated_by=self_uid,
        )
        claimed = await self._store.create_if_absent(
            paths.shared_root(space_id),
            space.model_dump(mode="json", exclude_none=True),
        )

        resumed = False
        if not claimed:
            existing = await self._load_space(space_id)
            if existing is None:
                # Root vanished between the claim and the read (rolled back)
                raise LinkConflictError(
                    f"Shared space {space_id} changed while linking, try again"
                )
            if existing.is_complete:
                raise AlreadyLinkedError(f"Already linked with {email}")
            if existing.initiated_by != self_uid:
                raise LinkConflictError(
                    f"{email} is already linking with you, try again shortly"
                )
            logger.info(
                "link_resuming",
                space_id=space_id,
                state=existing.migration_state.value,
            )
            space = existing
            resumed = True

        return await self._advance(space, resumed=resumed)

    @returns_result
    async def resume_link(self, space_id: str) -> LinkOutcome:
        """
        Continue an interrupted link from its persisted migration_state.

        Raises:
            NotFoundError: No such space
            AlreadyLinkedError: The link already completed
        """
        space = await self._require_incomplete(space_id)
        return await self._advance(space, resumed=True)

    @returns_result
    async def resume_pending(self) -> list[LinkOutcome]:
        """
        Resume every incomplete link in the store.

        A space that fails to resume, malformed roots included, is logged
        and skipped; the others still run.
        """
        snapshot = await self._store.read(paths.shared_spaces_root())
        outcomes = []
        for space_id, value in snapshot.child_items():
            try:
                space = self._parse_space(space_id, value)
                if space is None or space.is_complete:
                    continue
                outcomes.append(await self._advance(space, resumed=True))
            except HouseholdStoreError as e:
                logger.warning("link_resume_failed", space_id=space_id, error=str(e))
        return outcomes

    @returns_result
    async def rollback_link(self, space_id: str) -> str:
        """
        Undo an incomplete link in one atomic update.

        Clears the link fields on every member profile that points at the
        space and deletes the space root.

        Raises:
            NotFoundError: No such space
            AlreadyLinkedError: The link already completed (use unlink)
        """
        space = await self._require_incomplete(space_id)
        now = to_iso(self._clock())

        updates: dict[str, Any] = {}
        for uid in space.members:
            profile = await self._profiles.fetch_profile(uid)
            if profile and profile.get("shared_space_id") == space_id:
                updates.update(self._profile_link_updates(uid, None, now))
        updates[paths.shared_root(space_id)] = None
        await self._store.atomic_write(updates)

        state = space.migration_state.value if space.migration_state else None
        logger.warning("link_rolled_back", space_id=space_id, state=state)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.shared_space_rolled_back(space_id=space_id, state=state)
            )
        return space_id

    async def _advance(self, space: SharedSpace, resumed: bool) -> LinkOutcome:
        """Run the remaining saga steps for space, from its marker on."""
        initiator = space.initiated_by
        partner_uid = space.partner_of(initiator) if initiator else None
        if not initiator or not partner_uid:
            raise NotFoundError(f"Shared space {space.id} has no initiator to resume")

        state = space.migration_state or MigrationState.DATA_MIGRATED
        migrated = 0

        if state == MigrationState.CREATED:
            await self._link_profiles(space.id, initiator, partner_uid)
            state = MigrationState.PROFILES_UPDATED

        if state == MigrationState.PROFILES_UPDATED:
            migrated = await self._copy_private_to_shared(space.id, initiator)

        logger.info(
            "partner_linked",
            space_id=space.id,
            uid=initiator,
            partner_uid=partner_uid,
            migrated_items=migrated,
            resumed=resumed,
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.shared_space_linked(
                    space_id=space.id,
                    uid=initiator,
                    partner_uid=partner_uid,
                    migrated_items=migrated,
                    resumed=resumed,
                )
            )
        return LinkOutcome(
            shared_space_id=space.id,
            partner_uid=partner_uid,
            migrated_items=migrated,
            resumed=resumed,
        )

    async def _link_profiles(self, space_id: str, uid: str, partner_uid: str) -> None:
        own, partner = await asyncio.gather(
            self._profiles.fetch_profile(uid),
            self._profiles.fetch_profile(partner_uid),
        )
        if own is None or partner is None:
            missing = uid if own is None else partner_uid
            raise NotFoundError(f"Profile not found for user {missing}")

        now = to_iso(self._clock())
        updates: dict[str, Any] = {}
        updates.update(
            self._profile_link_updates(
                uid,
                {
                    "shared_space_id": space_id,
                    "sharing_with": partner_uid,
                    "partner_email": partner.get("email"),
                },
                now,
            )
        )
        updates.update(
            self._profile_link_updates(
                partner_uid,
                {
                    "shared_space_id": space_id,
                    "sharing_with": uid,
                    "partner_email": own.get("email"),
                },
                now,
            )
        )
        updates.update(self._marker_updates(space_id, MigrationState.PROFILES_UPDATED, now))
        await self._store.atomic_write(updates)

    async def _copy_private_to_shared(self, space_id: str, uid: str) -> int:
        """Copy uid's private partitions into the space. Returns items copied."""
        snapshots = await asyncio.gather(
            *(
                self._store.read(paths.user_partition(uid, kind))
                for kind in SHARED_PARTITIONS
            )
        )

        now = to_iso(self._clock())
        updates: dict[str, Any] = {}
        for kind, snapshot in zip(SHARED_PARTITIONS, snapshots):
            for item_id, record in snapshot.child_items():
                updates[paths.join(paths.shared_partition(space_id, kind), item_id)] = record
        copied = len(updates)

        updates.update(self._marker_updates(space_id, MigrationState.DATA_MIGRATED, now))
        await self._store.atomic_write(updates)
        return copied

    # =========================================================================
    # UNLINK
    # =========================================================================

    @returns_result
    async def unlink_partner(self, self_uid: str) -> UnlinkOutcome:
        """
        Dissolve the caller's shared space in one atomic update.

        The shared records, events included, are copied back into the
        caller's private partitions and the shopping sessions into
        users/<uid>/shopping_sessions (the partner gets nothing back).
        The link fields are cleared on both profiles and the space is
        deleted.

        Raises:
            NotFoundError: Caller has no profile
            NotLinkedError: Caller is not sharing
        """
        own = await self._profiles.fetch_profile(self_uid)
        if own is None:
            raise NotFoundError(f"Profile not found for user {self_uid}")
        partner_uid = own.get("sharing_with")
        if not partner_uid:
            raise NotLinkedError("You are not sharing with anyone")

        space_id = own.get("shared_space_id") or paths.shared_space_id(self_uid, partner_uid)
        shared, partner = await asyncio.gather(
            self._store.read(paths.shared_root(space_id)),
            self._profiles.fetch_profile(partner_uid),
        )
        shared_data = shared.value if isinstance(shared.value, dict) else {}

        now = to_iso(self._clock())
        updates: dict[str, Any] = {}
        for kind in RESTORED_PARTITIONS:
            for item_id, record in as_record_map(shared_data.get(kind.value)).items():
                updates[paths.join(paths.user_partition(self_uid, kind), item_id)] = record
        sessions = as_record_map(shared_data.get(paths.SESSIONS_KEY))
        for session_id, session in sessions.items():
            updates[paths.join(paths.user_sessions(self_uid), session_id)] = session
        restored = len(updates)

        updates.update(self._profile_link_updates(self_uid, None, now))
        if partner and partner.get("shared_space_id") == space_id:
            updates.update(self._profile_link_updates(partner_uid, None, now))
        updates[paths.shared_root(space_id)] = None
        await self._store.atomic_write(updates)

        logger.info(
            "partner_unlinked",
            space_id=space_id,
            uid=self_uid,
            partner_uid=partner_uid,
            restored_items=restored,
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.shared_space_unlinked(
                    space_id=space_id,
                    uid=self_uid,
                    partner_uid=partner_uid,
                    restored_items=restored,
                )
            )
        return UnlinkOutcome(
            shared_space_id=space_id,
            partner_uid=partner_uid,
            restored_items=restored,
        )

    # =========================================================================
    # STATUS
    # =========================================================================

    @returns_result
    async def sharing_status(self, uid: str) -> SharingStatus:
        profile = await self._profiles.fetch_profile(uid)
        if profile is None:
            raise NotFoundError(f"Profile not found for user {uid}")

        partner_uid = profile.get("sharing_with")
        if not partner_uid:
            return SharingStatus(is_sharing=False)

        return SharingStatus(
            is_sharing=True,
            partner_uid=partner_uid,
            partner_profile=await self._profiles.fetch_profile(partner_uid),
            shared_space_id=profile.get("shared_space_id"),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_space(self, space_id: str) -> Optional[SharedSpace]:
        snapshot = await self._store.read(paths.shared_root(space_id))
        return self._parse_space(space_id, snapshot.value)

    @staticmethod
    def _parse_space(space_id: str, value: Any) -> Optional[SharedSpace]:
        """
        Raises:
            ValidationError: The root holds values SharedSpace can't accept
        """
        if not isinstance(value, dict):
            return None
        root = {
            key: child
            for key, child in value.items()
            if key in SharedSpace.model_fields
        }
        root["id"] = space_id
        try:
            return SharedSpace.model_validate(root)
        except PydanticValidationError as e:
            logger.warning("shared_space_malformed", space_id=space_id, errors=e.error_count())
            raise ValidationError(
                "shared_space",
                [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
            ) from e

    async def _require_incomplete(self, space_id: str) -> SharedSpace:
        space = await self._load_space(space_id)
        if space is None:
            raise NotFoundError(f"Shared space {space_id} not found")
        if space.is_complete:
            raise AlreadyLinkedError(f"Shared space {space_id} is already linked")
        return space

    @staticmethod
    def _profile_link_updates(
        uid: str,
        link: Optional[dict[str, Any]],
        now: str,
    ) -> dict[str, Any]:
        """Per-field updates setting (or clearing, when link is None) a link."""
        profile_path = paths.user_profile(uid)
        updates = {
            paths.join(profile_path, field): (link or {}).get(field)
            for field in LINK_FIELDS
        }
        updates[paths.join(profile_path, "updated_at")] = now
        return updates

    @staticmethod
    def _marker_updates(space_id: str, state: MigrationState, now: str) -> dict[str, Any]:
        root = paths.shared_root(space_id)
        return {
            paths.join(root, "migration_state"): state.value,
            paths.join(root, "updated_at"): now,
        }
