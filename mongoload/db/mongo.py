"""pymongo-backed database client.

Wraps a single collection and exposes the operations load scripts call.
Connection pooling, server selection and authentication stay inside
pymongo; this module only adapts return values and wraps driver errors in
``DatabaseError``.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from mongoload.db.client import Document, Pipeline
from mongoload.exceptions import DatabaseError
from mongoload.logger import Logger, session_logger

_DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


class MongoDatabaseClient:
    """Collection-scoped MongoDB client.

    Thread-safe: pymongo's ``MongoClient`` is safe to share across threads, so
    one instance can serve every virtual user of a run.
    """

    def __init__(
        self,
        client: MongoClient,
        collection: Collection,
        *,
        logger: Logger | None = None,
    ) -> None:
        self._client = client
        self._collection = collection
        self._logger = logger or session_logger

    @classmethod
    def connect(
        cls,
        uri: str,
        database: str,
        collection: str,
        *,
        logger: Logger | None = None,
        server_selection_timeout_ms: int = _DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
        **client_kwargs: Any,
    ) -> "MongoDatabaseClient":
        """Create a client for ``database.collection``.

        pymongo connects lazily, so an unreachable server surfaces on the first
        operation (or ``ping``), not here.
        """
        try:
            client: MongoClient = MongoClient(
                uri,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
                **client_kwargs,
            )
        except (PyMongoError, ValueError) as exc:
            raise DatabaseError(
                "CONNECT_FAILED",
                f"could not create MongoDB client: {exc}",
                details={"database": database, "collection": collection},
            ) from exc

        return cls(client, client[database][collection], logger=logger)

    @property
    def collection_name(self) -> str:
        return self._collection.name

    def _call(self, operation: str, fn, *args, **kwargs):
        start = time.monotonic()
        try:
            return fn(*args, **kwargs)
        except PyMongoError as exc:
            duration_ms = int((time.monotonic() - start) * 1000)
            self._logger.warning(
                "db.operation_failed",
                event="db.operation_failed",
                operation=operation,
                collection=self._collection.name,
                duration_ms=duration_ms,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise DatabaseError(
                "DB_OPERATION_FAILED",
                str(exc),
                details={
                    "operation": operation,
                    "collection": self._collection.name,
                    "error_type": type(exc).__name__,
                },
            ) from exc

    def aggregate(self, pipeline: Pipeline, **kwargs: Any) -> list[dict[str, Any]]:
        return self._call("aggregate", lambda: list(self._collection.aggregate(list(pipeline), **kwargs)))

    def find_one(self, filter: Optional[Document] = None, **kwargs: Any) -> Optional[dict[str, Any]]:
        return self._call("find_one", self._collection.find_one, filter, **kwargs)

    def find(self, filter: Optional[Document] = None, **kwargs: Any) -> list[dict[str, Any]]:
        return self._call("find", lambda: list(self._collection.find(filter, **kwargs)))

    def insert_one(self, document: Document, **kwargs: Any) -> Any:
        result = self._call("insert_one", self._collection.insert_one, document, **kwargs)
        return result.inserted_id

    def insert_many(self, documents: Iterable[Document], **kwargs: Any) -> list[Any]:
        result = self._call("insert_many", self._collection.insert_many, list(documents), **kwargs)
        return list(result.inserted_ids)

    def update_one(self, filter: Document, update: Document, **kwargs: Any) -> bool:
        """Return True when a document was modified."""
        result = self._call("update_one", self._collection.update_one, filter, update, **kwargs)
        return result.modified_count > 0

    def update_many(self, filter: Document, update: Document, **kwargs: Any) -> int:
        result = self._call("update_many", self._collection.update_many, filter, update, **kwargs)
        return result.modified_count

    def delete_one(self, filter: Document, **kwargs: Any) -> bool:
        result = self._call("delete_one", self._collection.delete_one, filter, **kwargs)
        return result.deleted_count > 0

    def ping(self) -> None:
        self._call("ping", self._client.admin.command, "ping")

    def close(self) -> None:
        self._client.close()
