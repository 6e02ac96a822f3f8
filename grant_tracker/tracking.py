"""
Tracked grant persistence.

Each user's list is one document under "grants:<userId>", fully replaced
on every write (last writer wins). When the store is unreachable the
service keeps working against an in-process fallback and reports
persisted=False.
"""

from typing import Any, Optional

import structlog

from .context import AppContext
from .core.exceptions import NotFoundError, StorageUnavailable, ValidationError
from .core.models import TrackedGrantList
from .storage.base import KeyValueStore, MemoryStore

logger = structlog.get_logger(__name__)

TRACKED_PREFIX = "grants:"


def tracked_key(user_id: str) -> str:
    return f"{TRACKED_PREFIX}{user_id}"


def _grant_id(grant: Any) -> Optional[str]:
    if isinstance(grant, dict) and grant.get("id") is not None:
        return str(grant["id"])
    return None


class TrackedGrantService:
    """Save, load, update and delete a user's tracked grants."""

    def __init__(self, context: AppContext, fallback: Optional[KeyValueStore] = None):
        """
        Args:
            context: Shared application context
            fallback: Store used while the primary store is unavailable
        """
        self.context = context
        self.fallback = fallback if fallback is not None else MemoryStore()

    async def _read(self, user_id: str) -> tuple[Optional[TrackedGrantList], bool]:
        """Returns (document or None, persisted)."""
        key = tracked_key(user_id)
        try:
            data = await self.context.store.get(key)
            persisted = True
        except StorageUnavailable as e:
            logger.warning("tracking_read_degraded", user_id=user_id, error=e.message)
            data = await self.fallback.get(key)
            persisted = False

        if not data:
            return None, persisted
        return TrackedGrantList.from_dict(data), persisted

    async def _write(self, document: TrackedGrantList) -> bool:
        """Store the document; returns persisted."""
        key = tracked_key(document.user_id)
        try:
            await self.context.store.put(key, document.to_dict())
            return True
        except StorageUnavailable as e:
            logger.warning("tracking_write_degraded", user_id=document.user_id, error=e.message)
            await self.fallback.put(key, document.to_dict())
            return False

    async def save(self, user_id: str, grants: Any) -> dict:
        """
        Replace a user's tracked list.

        Args:
            user_id: Pseudo user id
            grants: List of grant objects, stored verbatim

        Returns:
            {success, userId, grantCount, timestamp, persisted}

        Raises:
            ValidationError: grants is not a list
        """
        if not isinstance(grants, list):
            raise ValidationError("Invalid grants data: 'grants' must be an array")

        document = TrackedGrantList(user_id=user_id, grants=grants)
        persisted = await self._write(document)

        logger.info("grants_saved", user_id=user_id, count=len(grants), persisted=persisted)
        response = {
            "success": True,
            "userId": user_id,
            "grantCount": len(grants),
            "timestamp": document.timestamp,
            "persisted": persisted,
        }
        if not persisted:
            response["degraded"] = True
        return response

    async def load(self, user_id: str) -> dict:
        """
        Load a user's tracked list (empty when none was saved).

        Returns:
            {grants, userId, grantCount, timestamp?}
        """
        document, persisted = await self._read(user_id)

        if document is None:
            response = {"grants": [], "userId": user_id, "grantCount": 0}
        else:
            response = {
                "grants": document.grants,
                "userId": document.user_id or user_id,
                "grantCount": len(document.grants),
                "timestamp": document.timestamp,
            }
        if not persisted:
            response["degraded"] = True
        return response

    async def update(self, user_id: str, grant_id: Any, updates: Any) -> dict:
        """
        Merge updates into one tracked grant and stamp lastUpdate.

        Args:
            user_id: Pseudo user id
            grant_id: Id of the grant to update (compared as string)
            updates: Fields to merge

        Returns:
            {success, updatedGrant}

        Raises:
            ValidationError: Missing grant id or non-object updates
            NotFoundError: No list for the user, or grant not in it
        """
        if grant_id in (None, "") or not isinstance(updates, dict) or not updates:
            raise ValidationError("Missing grantId or updates")

        document, _ = await self._read(user_id)
        if document is None:
            raise NotFoundError("No saved grants found for user", details={"userId": user_id})

        wanted = str(grant_id)
        updated = None
        grants = []
        for grant in document.grants:
            if updated is None and _grant_id(grant) == wanted:
                updated = {
                    **grant,
                    **updates,
                    "id": grant.get("id"),
                    "lastUpdate": self.context.today().isoformat(),
                }
                grants.append(updated)
            else:
                grants.append(grant)

        if updated is None:
            raise NotFoundError("Grant not found", details={"grantId": wanted})

        persisted = await self._write(TrackedGrantList(user_id=user_id, grants=grants))
        logger.info("grant_updated", user_id=user_id, grant_id=wanted, persisted=persisted)

        response = {"success": True, "updatedGrant": updated}
        if not persisted:
            response["degraded"] = True
        return response

    async def delete(self, user_id: str, grant_id: Any = None) -> dict:
        """
        Delete one tracked grant, or the whole list when grant_id is None.

        Deleting a grant that is not tracked succeeds without changes.

        Returns:
            {success, message}
        """
        if grant_id in (None, ""):
            try:
                await self.context.store.delete(tracked_key(user_id))
            except StorageUnavailable as e:
                logger.warning("tracking_delete_degraded", user_id=user_id, error=e.message)
            await self.fallback.delete(tracked_key(user_id))
            logger.info("grants_deleted", user_id=user_id)
            return {"success": True, "message": "All grants deleted successfully"}

        document, _ = await self._read(user_id)
        if document is not None:
            wanted = str(grant_id)
            remaining = [g for g in document.grants if _grant_id(g) != wanted]
            if len(remaining) != len(document.grants):
                await self._write(TrackedGrantList(user_id=user_id, grants=remaining))
                logger.info("grant_deleted", user_id=user_id, grant_id=wanted)

        return {"success": True, "message": "Grant deleted successfully"}
