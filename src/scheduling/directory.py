"""Read-only user and class lookups for visibility and permission checks."""

from src.scheduling.config import SchedulingConfig, get_config
from src.scheduling.logging import get_logger
from src.scheduling.models import SchoolClass, User
from src.scheduling.retry import RetryPolicy
from src.scheduling.store import DocumentStore, Filter

logger = get_logger(__name__)


class Directory:
    """Users and classes stored next to the schedules."""

    def __init__(
        self,
        store: DocumentStore,
        config: SchedulingConfig | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.retry = retry or RetryPolicy.from_config(self.config)

    async def get_user_by_id(self, user_id: str) -> User | None:
        doc = await self.retry(
            lambda: self.store.get(self.config.users_collection, user_id)
        )
        if doc is None:
            logger.debug("user_not_found", user_id=user_id)
            return None
        return User.from_document(doc.id, doc.data)

    async def classes_by_teacher(self, teacher_id: str) -> list[SchoolClass]:
        docs = await self.retry(
            lambda: self.store.query(
                self.config.classes_collection,
                [Filter("teacherId", "==", teacher_id)],
            )
        )
        return [SchoolClass.from_document(d.id, d.data) for d in docs]
