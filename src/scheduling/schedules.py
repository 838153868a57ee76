"""Schedule persistence: create, read, update and delete.

Recurring schedules are written as one template plus every generated
instance in a single batch. One-off schedules are mirrored to the external
calendar when a mirror is configured; mirror failures never fail the write.
Templates and their instances are independent documents once created:
updating a template does not touch its instances.
"""

from zoneinfo import ZoneInfo

from src.scheduling.config import SchedulingConfig, get_config
from src.scheduling.errors import PermanentError, SchedulingError
from src.scheduling.logging import get_logger
from src.scheduling.mirror import CalendarMirror
from src.scheduling.models import (
    CalendarEvent,
    Schedule,
    ScheduleData,
    SchedulePatch,
    ScheduleStatus,
    utcnow,
)
from src.scheduling.recurrence import expand
from src.scheduling.retry import RetryPolicy
from src.scheduling.store import DocumentStore, Filter

logger = get_logger(__name__)

# Patch fields that change what the external calendar shows
MIRRORED_FIELDS = ("title", "start_time", "location")


class ScheduleStore:
    """Schedule documents on top of a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        mirror: CalendarMirror | None = None,
        config: SchedulingConfig | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.store = store
        self.mirror = mirror
        self.config = config or get_config()
        self.retry = retry or RetryPolicy.from_config(self.config)
        self.collection = self.config.schedules_collection

    async def create(self, data: ScheduleData, created_by: str) -> str | None:
        """Create a schedule (or a recurring family) and return its id.

        Args:
            data: Validated create payload.
            created_by: Id of the user creating the schedule.

        Returns:
            The new schedule id (the template id for recurring schedules),
            or None if the store rejected the write.

        Raises:
            TransientError: If the store stayed rate limited through every retry.
        """
        now = utcnow()
        document = data.to_document()
        document.update(
            {
                "createdBy": created_by,
                "createdAt": now.isoformat(timespec="microseconds"),
                "updatedAt": now.isoformat(timespec="microseconds"),
                "status": ScheduleStatus.ACTIVE.value,
                "isRecurringInstance": False,
            }
        )

        try:
            if data.is_recurring:
                return await self._create_recurring(data, document, created_by, now)
            return await self._create_single(data, document)
        except PermanentError as e:
            logger.error("schedule_create_failed", title=data.title, error=str(e))
            return None

    async def _create_recurring(self, data, document, created_by, now) -> str:
        template_id = self.store.new_id(self.collection)
        instances = expand(
            data,
            created_by=created_by,
            now=now,
            local_tz=ZoneInfo(self.config.timezone),
            max_instances=self.config.recurrence_max_instances,
            horizon_days=self.config.recurrence_horizon_days,
        )

        batch = self.store.batch()
        batch.set(self.collection, template_id, document)
        for instance in instances:
            instance["parentScheduleId"] = template_id
            batch.set(self.collection, self.store.new_id(self.collection), instance)

        await self.retry(batch.commit)

        logger.info(
            "recurring_schedule_created",
            schedule_id=template_id,
            instances=len(instances),
        )
        return template_id

    async def _create_single(self, data, document) -> str:
        external_id = None
        if self.mirror is not None:
            try:
                external_id = await self.mirror.create_event(CalendarEvent.from_schedule(data))
            except Exception as e:
                logger.warning("mirror_create_failed", title=data.title, error=str(e))

        if external_id:
            document["googleEventId"] = external_id

        try:
            schedule_id = await self.retry(lambda: self.store.add(self.collection, document))
        except SchedulingError as e:
            if external_id:
                logger.error(
                    "mirror_event_orphaned",
                    external_id=external_id,
                    title=data.title,
                    error=str(e),
                )
            raise
        logger.info("schedule_created", schedule_id=schedule_id, mirrored=bool(external_id))
        return schedule_id

    async def get_by_id(self, schedule_id: str) -> Schedule | None:
        """Return the schedule, or None if it does not exist."""
        doc = await self.retry(lambda: self.store.get(self.collection, schedule_id))
        if doc is None:
            return None
        return Schedule.from_document(doc.id, doc.data)

    async def update(self, schedule_id: str, patch: SchedulePatch) -> bool:
        """Apply the present fields of ``patch`` and stamp ``updatedAt``.

        Returns:
            False if the schedule does not exist or the store rejected the write.
        """
        try:
            current = await self.get_by_id(schedule_id)
            if current is None:
                logger.error("schedule_not_found", schedule_id=schedule_id, action="update")
                return False

            start = patch.start_time if patch.touches("start_time") else current.start_time
            end = patch.end_time if patch.touches("end_time") else current.end_time
            if end <= start:
                logger.error(
                    "schedule_update_rejected",
                    schedule_id=schedule_id,
                    reason="end_before_start",
                )
                return False

            mirrored = current.google_event_id and self.mirror is not None
            if mirrored and patch.touches(*MIRRORED_FIELDS):
                await self._mirror_update(current, patch)

            changes = patch.to_document()
            changes["updatedAt"] = utcnow().isoformat(timespec="microseconds")
            await self.retry(lambda: self.store.update(self.collection, schedule_id, changes))
        except PermanentError as e:
            logger.error("schedule_update_failed", schedule_id=schedule_id, error=str(e))
            return False

        logger.info(
            "schedule_updated",
            schedule_id=schedule_id,
            fields=sorted(patch.model_fields_set),
        )
        return True

    async def _mirror_update(self, current: Schedule, patch: SchedulePatch) -> None:
        merged = current.model_copy(
            update={k: getattr(patch, k) for k in patch.model_fields_set}
        )
        try:
            await self.mirror.update_event(
                current.google_event_id, CalendarEvent.from_schedule(merged)
            )
        except Exception as e:
            logger.warning(
                "mirror_update_failed",
                schedule_id=current.id,
                event_id=current.google_event_id,
                error=str(e),
            )

    async def delete(self, schedule_id: str) -> bool:
        """Delete a schedule and, best effort, its mirrored event.

        Returns:
            False if the schedule does not exist or the store rejected the delete.
        """
        try:
            current = await self.get_by_id(schedule_id)
            if current is None:
                logger.error("schedule_not_found", schedule_id=schedule_id, action="delete")
                return False

            if current.google_event_id and self.mirror is not None:
                try:
                    await self.mirror.delete_event(current.google_event_id)
                except Exception as e:
                    logger.warning(
                        "mirror_delete_failed",
                        schedule_id=schedule_id,
                        event_id=current.google_event_id,
                        error=str(e),
                    )

            await self.retry(lambda: self.store.delete(self.collection, schedule_id))
        except PermanentError as e:
            logger.error("schedule_delete_failed", schedule_id=schedule_id, error=str(e))
            return False

        logger.info("schedule_deleted", schedule_id=schedule_id)
        return True

    async def list_instances(self, parent_id: str) -> list[Schedule]:
        """Instances generated from a template, earliest first."""
        docs = await self.retry(
            lambda: self.store.query(
                self.collection,
                [Filter("parentScheduleId", "==", parent_id)],
                order_by="startTime",
            )
        )
        return [Schedule.from_document(d.id, d.data) for d in docs]
