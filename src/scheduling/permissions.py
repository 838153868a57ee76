"""Grants that let non-admin users create schedules.

One record per user: granting again refreshes the existing record. Admins
are always allowed and need no record.
"""

from src.scheduling.config import SchedulingConfig, get_config
from src.scheduling.directory import Directory
from src.scheduling.errors import PermanentError
from src.scheduling.logging import get_logger
from src.scheduling.models import SchedulePermission, UserRole, utcnow
from src.scheduling.retry import RetryPolicy
from src.scheduling.store import DocumentStore, Filter

logger = get_logger(__name__)


class PermissionRegistry:
    """Grant, revoke and check schedule-creation permission."""

    def __init__(
        self,
        store: DocumentStore,
        directory: Directory,
        config: SchedulingConfig | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.config = config or get_config()
        self.retry = retry or RetryPolicy.from_config(self.config)
        self.collection = self.config.permissions_collection

    async def _records_for(self, user_id: str, *extra: Filter):
        return await self.retry(
            lambda: self.store.query(
                self.collection, [Filter("userId", "==", user_id), *extra]
            )
        )

    async def grant(self, user_id: str, granted_by: str) -> bool:
        """Allow ``user_id`` to create schedules.

        Args:
            user_id: User receiving the permission.
            granted_by: Acting admin; must resolve to a user with role admin.

        Returns:
            False if either user is unknown, the grantor is not an admin, or
            the store rejected the write.
        """
        try:
            user = await self.directory.get_user_by_id(user_id)
            admin = await self.directory.get_user_by_id(granted_by)
            if user is None or admin is None or admin.role != UserRole.ADMIN:
                logger.error(
                    "permission_grant_denied",
                    user_id=user_id,
                    granted_by=granted_by,
                    reason="user_missing" if user is None else "not_admin",
                )
                return False

            granted_at = utcnow()
            existing = await self._records_for(user_id)
            if existing:
                changes = {
                    "canCreateSchedule": True,
                    "grantedBy": granted_by,
                    "grantedByName": admin.display_name,
                    "grantedAt": granted_at.isoformat(timespec="microseconds"),
                }
                record_id = existing[0].id
                await self.retry(
                    lambda: self.store.update(self.collection, record_id, changes)
                )
            else:
                record = SchedulePermission(
                    user_id=user_id,
                    user_name=user.display_name,
                    user_email=user.email,
                    can_create_schedule=True,
                    granted_by=granted_by,
                    granted_by_name=admin.display_name,
                    granted_at=granted_at,
                )
                await self.retry(
                    lambda: self.store.add(self.collection, record.to_document())
                )
        except PermanentError as e:
            logger.error("permission_grant_failed", user_id=user_id, error=str(e))
            return False

        logger.info(
            "permission_granted",
            user_id=user_id,
            granted_by=granted_by,
            updated=bool(existing),
        )
        return True

    async def revoke(self, user_id: str) -> bool:
        """Delete every permission record of ``user_id``.

        Returns:
            False if the user had no record.
        """
        try:
            existing = await self._records_for(user_id)
            if not existing:
                logger.info("permission_revoke_skipped", user_id=user_id, reason="no_record")
                return False

            batch = self.store.batch()
            for doc in existing:
                batch.delete(self.collection, doc.id)
            await self.retry(batch.commit)
        except PermanentError as e:
            logger.error("permission_revoke_failed", user_id=user_id, error=str(e))
            return False

        logger.info("permission_revoked", user_id=user_id, records=len(existing))
        return True

    async def check(self, user_id: str) -> bool:
        """True if ``user_id`` is an admin or holds an active grant."""
        try:
            user = await self.directory.get_user_by_id(user_id)
            if user is not None and user.role == UserRole.ADMIN:
                return True
            records = await self._records_for(
                user_id, Filter("canCreateSchedule", "==", True)
            )
        except PermanentError as e:
            logger.error("permission_check_failed", user_id=user_id, error=str(e))
            return False
        return bool(records)

    async def list_all(self) -> list[SchedulePermission]:
        """Every permission record, most recent grant first."""
        try:
            docs = await self.retry(
                lambda: self.store.query(
                    self.collection, order_by="grantedAt", descending=True
                )
            )
        except PermanentError as e:
            logger.error("permission_list_failed", error=str(e))
            return []
        return [SchedulePermission.from_document(d.id, d.data) for d in docs]
