"""Document record store.

The storefront keeps products, carts and orders in a document store that
supports single-document reads and writes plus multi-document transactions.
``RecordStore`` is the contract the repositories depend on;
``InMemoryRecordStore`` implements it for local runs and tests.
"""

from __future__ import annotations

import asyncio
import contextvars
import copy
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any, Protocol

from storefront.errors import RecordStoreError

logger = logging.getLogger(__name__)

Document = dict[str, Any]

PRODUCTS = "products"
CARTS = "carts"
ORDERS = "orders"


class RecordStore(Protocol):
    """Async document store keyed by each document's ``id`` field."""

    async def find_by_id(self, collection: str, record_id: str) -> Document | None: ...

    async def find(
        self, collection: str, query: Mapping[str, Any] | None = None
    ) -> list[Document]: ...

    async def save(self, collection: str, document: Document) -> Document: ...

    async def update_by_id(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Document | None: ...

    async def delete_by_id(self, collection: str, record_id: str) -> bool: ...

    def transaction(self) -> Any: ...


_in_transaction: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "record_store_in_transaction", default=False
)


class InMemoryRecordStore:
    """Dict-backed record store.

    Transactions are serialized by a lock and roll every collection back to
    its state at ``BEGIN`` when the block raises. A transaction opened inside
    another one joins the outer transaction.

    ``fail_writes`` makes every write raise ``RecordStoreError``, which lets
    callers exercise their failure paths.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()
        self.fail_writes = False

    def _collection(self, name: str) -> dict[str, Document]:
        return self._collections.setdefault(name, {})

    def _check_writable(self, operation: str, collection: str) -> None:
        if self.fail_writes:
            raise RecordStoreError(f"{operation} on {collection} failed")

    async def find_by_id(self, collection: str, record_id: str) -> Document | None:
        document = self._collection(collection).get(record_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(
        self, collection: str, query: Mapping[str, Any] | None = None
    ) -> list[Document]:
        """Documents whose top-level fields equal every value in ``query``."""
        query = query or {}
        return [
            copy.deepcopy(document)
            for document in self._collection(collection).values()
            if all(document.get(field) == value for field, value in query.items())
        ]

    async def save(self, collection: str, document: Document) -> Document:
        """Insert or replace a document."""
        self._check_writable("save", collection)
        if not document.get("id"):
            raise RecordStoreError(f"Document saved to {collection} has no id")
        self._collection(collection)[document["id"]] = copy.deepcopy(document)
        return copy.deepcopy(document)

    async def update_by_id(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Document | None:
        """Shallow-merge ``patch`` into a document. None if it does not exist."""
        self._check_writable("update", collection)
        document = self._collection(collection).get(record_id)
        if document is None:
            return None
        document.update(copy.deepcopy(dict(patch)))
        return copy.deepcopy(document)

    async def delete_by_id(self, collection: str, record_id: str) -> bool:
        self._check_writable("delete", collection)
        return self._collection(collection).pop(record_id, None) is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """All-or-nothing block of reads and writes."""
        if _in_transaction.get():
            yield
            return

        async with self._lock:
            snapshot = copy.deepcopy(self._collections)
            token = _in_transaction.set(True)
            try:
                yield
            except BaseException:
                self._collections = snapshot
                logger.debug("Record store transaction rolled back")
                raise
            finally:
                _in_transaction.reset(token)
