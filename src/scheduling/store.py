"""Document store interface and the in-process implementation.

The scheduling components only need a small slice of a document database:
get by id, equality / array-contains queries with one ordering, partial
updates and atomic batched writes. DocumentStore describes that slice;
MemoryDocumentStore implements it for tests and local tooling.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

from src.scheduling.errors import DocumentNotFoundError, StoreError
from src.scheduling.logging import get_logger

logger = get_logger(__name__)

FilterOp = Literal["==", "array-contains"]


@dataclass(frozen=True)
class Filter:
    """One ``field op value`` condition of a query."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, document: dict) -> bool:
        current = document.get(self.field)
        if self.op == "==":
            return current == self.value
        if self.op == "array-contains":
            return isinstance(current, list) and self.value in current
        raise ValueError(f"Unsupported filter op {self.op!r}")


@dataclass(frozen=True)
class Document:
    """A document id with its data."""

    id: str
    data: dict


@dataclass(frozen=True)
class _Write:
    kind: Literal["set", "update", "delete"]
    collection: str
    doc_id: str
    data: dict | None = None


class WriteBatch(ABC):
    """Staged writes applied all-or-nothing by commit()."""

    def __init__(self) -> None:
        self._writes: list[_Write] = []

    def set(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self._writes.append(_Write("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self._writes.append(_Write("update", collection, doc_id, dict(data)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._writes.append(_Write("delete", collection, doc_id))
        return self

    def __len__(self) -> int:
        return len(self._writes)

    @abstractmethod
    async def commit(self) -> None:
        """Apply every staged write, or none of them."""


class DocumentStore(ABC):
    """Async document store used by every scheduling component."""

    @abstractmethod
    def new_id(self, collection: str) -> str:
        """Reserve a fresh document id (no write)."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Fetch one document, or None if it does not exist."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """Documents matching every filter, optionally ordered by one field."""

    @abstractmethod
    async def add(self, collection: str, data: dict) -> str:
        """Insert a document under a generated id and return the id."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        """Merge ``data`` into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is a no-op."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""


class MemoryWriteBatch(WriteBatch):
    def __init__(self, store: "MemoryDocumentStore") -> None:
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        await self._store._commit(self._writes)


class MemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore.

    Batches are applied to a copy of the data and swapped in only when every
    write succeeded, so a failing write leaves no partial state behind.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> Document | None:
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        return Document(doc_id, copy.deepcopy(data))

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        filters = filters or []
        docs = [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if all(f.matches(data) for f in filters)
        ]
        if order_by is not None:
            # Documents missing the field are excluded, as an indexed store would
            docs = [d for d in docs if d.data.get(order_by) is not None]
            docs.sort(key=lambda d: d.data[order_by], reverse=descending)
        return docs

    async def add(self, collection: str, data: dict) -> str:
        doc_id = self.new_id(collection)
        await self._commit([_Write("set", collection, doc_id, dict(data))])
        return doc_id

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        await self._commit([_Write("update", collection, doc_id, dict(data))])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._commit([_Write("delete", collection, doc_id)])

    def batch(self) -> WriteBatch:
        return MemoryWriteBatch(self)

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    async def _commit(self, writes: list[_Write]) -> None:
        staged = copy.deepcopy(self._collections)
        for index, write in enumerate(writes):
            self._apply_write(staged, write, index)
        self._collections = staged
        logger.debug("memory_store_committed", writes=len(writes))

    def _apply_write(self, staged: dict[str, dict[str, dict]], write: _Write, index: int) -> None:
        docs = staged.setdefault(write.collection, {})
        if write.kind == "set":
            docs[write.doc_id] = copy.deepcopy(write.data)
        elif write.kind == "update":
            if write.doc_id not in docs:
                raise DocumentNotFoundError(write.collection, write.doc_id)
            docs[write.doc_id].update(copy.deepcopy(write.data))
        elif write.kind == "delete":
            docs.pop(write.doc_id, None)
        else:
            raise StoreError(f"Unknown write kind {write.kind!r} at position {index}")
