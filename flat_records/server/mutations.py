"""Create, update and delete operations that keep tables and cache coherent."""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..errors import IdGenerationError, RecordNotFoundError
from .cache import TTLCache
from .registry import TableRegistry
from .table import ID_FIELD, DurableTable, Record, coerce_fields

logger = logging.getLogger(__name__)

_MAX_ID_ATTEMPTS = 16


def _uuid_id() -> str:
    return uuid.uuid4().hex


class MutationStatus(str, enum.Enum):
    CREATED = "created"
    OK = "ok"
    NO_CONTENT = "no content"


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a mutation: its status and the affected record, if any."""

    status: MutationStatus
    record: Record | None = None


class MutationCoordinator:
    """Apply mutations to a table, persist it, then invalidate its cached read.

    Each mutation holds the table's lock from reading the current records
    until the cache key is invalidated. A failed persist propagates
    :class:`~flat_records.errors.TableWriteError` and leaves the table and
    the cache untouched.
    """

    def __init__(
        self,
        registry: TableRegistry,
        cache: TTLCache,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._id_factory = id_factory or _uuid_id

    def create(self, name: str, payload: Mapping[str, Any]) -> MutationResult:
        table = self._registry.get(name)
        fields = coerce_fields(payload, exclude=(ID_FIELD,))
        with table.lock:
            record = {ID_FIELD: self._fresh_id(table), **fields}
            self._commit(table, [*table.snapshot(), record])
        logger.info("Created %s record %s", name, record[ID_FIELD])
        return MutationResult(MutationStatus.CREATED, dict(record))

    def update(
        self, name: str, record_id: str, payload: Mapping[str, Any]
    ) -> MutationResult:
        table = self._registry.get(name)
        fields = coerce_fields(payload, exclude=(ID_FIELD,))
        with table.lock:
            records = table.snapshot()
            index = next(
                (i for i, record in enumerate(records) if record.get(ID_FIELD) == record_id),
                None,
            )
            if index is None:
                raise RecordNotFoundError(name, record_id, label=table.label)
            merged = {**records[index], **fields}
            records[index] = merged
            self._commit(table, records)
        logger.info("Updated %s record %s", name, record_id)
        return MutationResult(MutationStatus.OK, dict(merged))

    def delete(self, name: str, record_id: str) -> MutationResult:
        """Remove every record with ``record_id``; a missing id is not an error.

        The table is rewritten and its cache key invalidated even when
        nothing matched.
        """

        table = self._registry.get(name)
        with table.lock:
            records = table.snapshot()
            remaining = [r for r in records if r.get(ID_FIELD) != record_id]
            self._commit(table, remaining)
        logger.info(
            "Deleted %d %s record(s) with id %s",
            len(records) - len(remaining),
            name,
            record_id,
        )
        return MutationResult(MutationStatus.NO_CONTENT)

    def _commit(self, table: DurableTable, records: list[Record]) -> None:
        table.replace(records)
        self._cache.delete(table.cache_key)
        logger.debug("Invalidated cache key %s", table.cache_key)

    def _fresh_id(self, table: DurableTable) -> str:
        taken = table.ids()
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in taken:
                return candidate
        raise IdGenerationError(table.name, _MAX_ID_ATTEMPTS)


__all__ = ["MutationCoordinator", "MutationResult", "MutationStatus"]
