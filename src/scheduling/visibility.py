"""Which schedules a user may see, by role.

A schedule is visible when the user's id, or the id of a class they belong
to, appears in one of the schedule's participant arrays. The store cannot
OR several array-contains conditions together, so every role is compiled
into a QueryPlan: one probe per scoping dimension. Probes run concurrently
and their results are merged by schedule id.

    student    classIds ∋ user.classId, studentIds ∋ user
    teacher    teacherIds ∋ user, classIds ∋ each class taught by user
    assistant  teacherIds ∋ user, classIds ∋ each assigned class
    admin      everything

A probe that fails is logged and contributes nothing; the listing degrades
instead of failing. Students whose profile cannot be loaded see nothing.
"""

import asyncio
from dataclasses import dataclass, field

from pydantic import ValidationError

from src.scheduling.config import SchedulingConfig, get_config
from src.scheduling.directory import Directory
from src.scheduling.logging import get_logger
from src.scheduling.models import Schedule, ScheduleFilter, UserRole
from src.scheduling.retry import RetryPolicy
from src.scheduling.store import DocumentStore, Filter

logger = get_logger(__name__)


@dataclass(frozen=True)
class Probe:
    """One query against the schedules collection.

    ``filter`` of None means the whole collection.
    """

    label: str
    filter: Filter | None = None


@dataclass
class QueryPlan:
    role: UserRole
    user_id: str
    probes: list[Probe] = field(default_factory=list)

    def add(self, label: str, field_name: str, value: str) -> None:
        self.probes.append(Probe(label, Filter(field_name, "array-contains", value)))


class VisibilityResolver:
    """Resolves role-scoped schedule listings."""

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

    async def list_visible(
        self,
        user_id: str,
        role: UserRole | str,
        schedule_filter: ScheduleFilter | None = None,
    ) -> list[Schedule]:
        """Schedules visible to ``user_id`` acting as ``role``.

        Args:
            user_id: The viewing user.
            role: Role the listing is resolved for.
            schedule_filter: Optional narrowing applied after resolution.

        Returns:
            Schedules de-duplicated by id, latest start first.
        """
        try:
            role = UserRole(role)
        except ValueError:
            logger.warning("visibility_unknown_role", user_id=user_id, role=str(role))
            return []

        plan = await self.plan(user_id, role)
        if plan is None:
            return []

        schedules = await self.execute(plan)
        if schedule_filter is not None:
            schedules = [s for s in schedules if schedule_filter.matches(s)]

        logger.info(
            "visibility_resolved",
            user_id=user_id,
            role=role.value,
            probes=len(plan.probes),
            schedules=len(schedules),
        )
        return schedules

    async def plan(self, user_id: str, role: UserRole) -> QueryPlan | None:
        """Build the probes for ``role``; None when nothing can be visible."""
        plan = QueryPlan(role, user_id)

        if role == UserRole.ADMIN:
            plan.probes.append(Probe("all"))
            return plan

        if role == UserRole.STUDENT:
            try:
                user = await self.directory.get_user_by_id(user_id)
            except Exception as e:
                logger.warning("visibility_profile_failed", user_id=user_id, error=str(e))
                return None
            if user is None:
                logger.info("visibility_profile_missing", user_id=user_id)
                return None
            if user.class_id:
                plan.add(f"class:{user.class_id}", "classIds", user.class_id)
            plan.add("direct", "studentIds", user_id)
            return plan

        plan.add("direct", "teacherIds", user_id)
        for class_id in await self._class_scope(user_id, role):
            plan.add(f"class:{class_id}", "classIds", class_id)
        return plan

    async def _class_scope(self, user_id: str, role: UserRole) -> list[str]:
        """Classes a teacher owns or an assistant is assigned to."""
        try:
            if role == UserRole.TEACHER:
                classes = await self.directory.classes_by_teacher(user_id)
                class_ids = [c.id for c in classes]
            else:
                user = await self.directory.get_user_by_id(user_id)
                class_ids = list(user.assigned_class_ids) if user else []
        except Exception as e:
            logger.warning(
                "visibility_class_scope_failed",
                user_id=user_id,
                role=role.value,
                error=str(e),
            )
            return []
        # Keep order, drop repeats
        return list(dict.fromkeys(class_ids))

    async def execute(self, plan: QueryPlan) -> list[Schedule]:
        """Run every probe concurrently and merge the results by id."""
        results = await asyncio.gather(
            *(self._run_probe(plan, probe) for probe in plan.probes)
        )

        merged: dict[str, Schedule] = {}
        for schedules in results:
            for schedule in schedules:
                merged.setdefault(schedule.id, schedule)

        return sorted(merged.values(), key=lambda s: s.start_time, reverse=True)

    async def _run_probe(self, plan: QueryPlan, probe: Probe) -> list[Schedule]:
        filters = [probe.filter] if probe.filter is not None else []
        try:
            docs = await self.retry(
                lambda: self.store.query(
                    self.config.schedules_collection,
                    filters,
                    order_by="startTime",
                    descending=True,
                )
            )
        except Exception as e:
            logger.warning(
                "visibility_probe_failed",
                user_id=plan.user_id,
                role=plan.role.value,
                probe=probe.label,
                error=str(e),
            )
            return []

        schedules = []
        for doc in docs:
            try:
                schedules.append(Schedule.from_document(doc.id, doc.data))
            except ValidationError as e:
                logger.warning(
                    "visibility_document_invalid",
                    schedule_id=doc.id,
                    probe=probe.label,
                    error=str(e),
                )
        return schedules
