"""HTTP application wiring for the table registry, cache gate and mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ...errors import (
    IdGenerationError,
    RecordNotFoundError,
    TableNotFoundError,
    TableWriteError,
)
from ..cache import ReadThroughGate, TTLCache
from ..mutations import MutationCoordinator
from ..registry import TableRegistry
from ..settings import StoreSettings
from ..table import Record
from .models import ErrorResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreRuntimeState:
    """Objects shared across HTTP handlers."""

    registry: TableRegistry
    cache: TTLCache
    gate: ReadThroughGate
    mutations: MutationCoordinator

    def list_records(self, name: str) -> list[Record]:
        table = self.registry.get(name)
        return self.gate.fetch(table.cache_key, table.snapshot)


def create_store_app(
    settings: StoreSettings | None = None,
    *,
    registry: TableRegistry | None = None,
    clock: Callable[[], datetime] | None = None,
    id_factory: Callable[[], str] | None = None,
) -> FastAPI:
    """Create a FastAPI app serving CRUD routes for every configured table.

    ``registry`` defaults to one loaded from ``settings``; loading fails with
    :class:`~flat_records.errors.TableParseError` on a malformed file.
    """

    settings = settings or StoreSettings()
    registry = registry or TableRegistry.from_settings(settings)
    cache = TTLCache(settings.ttl, clock=clock)
    state = StoreRuntimeState(
        registry=registry,
        cache=cache,
        gate=ReadThroughGate(cache),
        mutations=MutationCoordinator(registry, cache, id_factory=id_factory),
    )

    app = FastAPI()
    app.state.store_state = state
    app.include_router(create_store_router())
    _install_error_handlers(app)
    return app


def create_store_router() -> APIRouter:
    """Build a router with list/create/update/delete routes per table."""

    router = APIRouter()
    not_found = {404: {"model": ErrorResponse}}

    @router.get(
        "/{table}",
        name="list-records",
        response_model=list[dict[str, str]],
        responses=not_found,
        summary="List every record in a table",
    )
    def list_records(
        table: str, state: StoreRuntimeState = Depends(_get_store_state)
    ) -> list[Record]:
        return state.list_records(table)

    @router.post(
        "/{table}",
        name="create-record",
        status_code=201,
        response_model=dict[str, str],
        responses=not_found,
        summary="Create a record with a generated id",
    )
    def create_record(
        table: str,
        payload: dict[str, Any] = Body(...),
        state: StoreRuntimeState = Depends(_get_store_state),
    ) -> Record:
        return state.mutations.create(table, payload).record

    @router.put(
        "/{table}/{record_id}",
        name="update-record",
        response_model=dict[str, str],
        responses=not_found,
        summary="Merge fields into an existing record",
    )
    def update_record(
        table: str,
        record_id: str,
        payload: dict[str, Any] = Body(...),
        state: StoreRuntimeState = Depends(_get_store_state),
    ) -> Record:
        return state.mutations.update(table, record_id, payload).record

    @router.delete(
        "/{table}/{record_id}",
        name="delete-record",
        status_code=204,
        response_class=Response,
        responses=not_found,
        summary="Delete a record; unknown ids are ignored",
    )
    def delete_record(
        table: str,
        record_id: str,
        state: StoreRuntimeState = Depends(_get_store_state),
    ) -> Response:
        state.mutations.delete(table, record_id)
        return Response(status_code=204)

    return router


def _get_store_state(request: Request) -> StoreRuntimeState:
    state = getattr(request.app.state, "store_state", None)
    if state is None:
        raise RuntimeError("Store runtime state is not configured")
    return state


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorResponse(message=message).model_dump()
    )


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TableNotFoundError)
    async def _table_not_found(request: Request, exc: TableNotFoundError) -> JSONResponse:
        return _error_response(404, str(exc))

    @app.exception_handler(RecordNotFoundError)
    async def _record_not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return _error_response(404, str(exc))

    @app.exception_handler(TableWriteError)
    async def _write_failed(request: Request, exc: TableWriteError) -> JSONResponse:
        logger.error("Write failed for %s %s: %s", request.method, request.url.path, exc)
        return _error_response(500, "Failed to persist changes")

    @app.exception_handler(IdGenerationError)
    async def _id_exhausted(request: Request, exc: IdGenerationError) -> JSONResponse:
        logger.error(
            "Id generation failed for %s %s: %s", request.method, request.url.path, exc
        )
        return _error_response(500, "Could not generate a record id")


__all__ = ["StoreRuntimeState", "create_store_app", "create_store_router"]
