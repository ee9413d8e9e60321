"""FastAPI surface receiving pushed ledger notifications."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from marketsync.config import SIGNATURE_HEADER
from marketsync.domain.clock import utcnow
from marketsync.domain.errors import AuthenticationError

from .schema import AcceptResponse
from .signature import verify_signature
from .translator import NotificationFormatError, parse_notifications

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from marketsync.domain.clock import Clock
    from marketsync.domain.indexing import EventIndexer

    from .worker import EventQueueWorker

log = logging.getLogger(__name__)


def build_router(
    *,
    indexer: EventIndexer,
    worker: EventQueueWorker,
    secret: str,
    clock: Clock = utcnow,
) -> APIRouter:
    router = APIRouter(prefix="/webhooks", tags=["webhooks"])

    @router.post("/ledger", status_code=status.HTTP_202_ACCEPTED)
    async def receive_ledger_notifications(
        request: Request,
        signature: Annotated[str | None, Header(alias=SIGNATURE_HEADER)] = None,
    ) -> AcceptResponse:
        body = await request.body()
        try:
            verify_signature(secret, body, signature)
        except AuthenticationError as exc:
            log.warning("Rejected notification batch from %s: %s", request.client, exc)
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        try:
            events = parse_notifications(body, received_at=clock())
        except NotificationFormatError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        result = await run_in_threadpool(indexer.accept, events)
        accepted = set(result.accepted)
        worker.submit(
            event.transaction_signature
            for event in sorted(events, key=lambda e: e.slot)
            if event.transaction_signature in accepted
        )
        log.info(
            "Notification batch: %d received, %d accepted, %d duplicate",
            result.received,
            len(result.accepted),
            len(result.duplicates),
        )
        return AcceptResponse(
            received=result.received,
            accepted=len(result.accepted),
            duplicates=len(result.duplicates),
        )

    @router.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok" if worker.running else "degraded", "worker": worker.status()}

    return router


def create_app(
    *,
    indexer: EventIndexer,
    worker: EventQueueWorker,
    secret: str,
    clock: Clock = utcnow,
) -> FastAPI:
    """App whose lifespan starts and stops the event worker."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        worker.start()
        try:
            yield
        finally:
            worker.stop()

    app = FastAPI(title="marketsync", lifespan=lifespan)
    app.include_router(build_router(indexer=indexer, worker=worker, secret=secret, clock=clock))
    return app
