# src/api/server.py — v1
"""FastAPI application exposing the orchestrator over HTTP.

Routes:
  POST /api/generate                  blocking run, JSON outcome
  POST /api/generate/stream           run with SSE progress
  POST /api/generate/start            background run, poll for progress
  GET  /api/prediction/{id}?cursor=n  poll a background run
  GET  /api/credits/balance           caller's balance
  POST /api/credits/refund            refund a charged run with no saved fusion
  GET  /api/fusions                   caller's gallery
  GET  /api/fusions/{id}              one gallery record
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from pokefusion.api.auth import AuthenticationError, HeaderAuthenticator
from pokefusion.api.facade import build_orchestrator, ensure_signup_credits
from pokefusion.api.models import (
    BalanceResponse,
    FusionListResponse,
    FusionRequestBody,
    GenerateResponse,
    PollResponse,
    RefundBody,
    StartResponse,
)
from pokefusion.config.settings import Settings
from pokefusion.core.models import GenerationRequest
from pokefusion.credits.gate import LedgerError, PaymentRequiredError, RefundRejectedError
from pokefusion.pipeline.orchestrator import FusionOrchestrator
from pokefusion.progress.poll_channel import RunRegistry
from pokefusion.progress.sse import SSE_HEADERS, sse_stream
from pokefusion.progress.stream_channel import StreamProgressChannel
from pokefusion.version import __version__

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    orchestrator: FusionOrchestrator | None = None,
    authenticator: HeaderAuthenticator | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Global settings. Loaded from .env if None.
        orchestrator: Pre-built orchestrator (built from settings if None).
        authenticator: Identity resolver (X-User-Id header by default).
    """
    settings = settings or Settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    authenticator = authenticator or HeaderAuthenticator()
    runs = RunRegistry(ttl_s=settings.poll_run_ttl_s)
    run_owners: dict[str, str] = {}
    background: set[asyncio.Task[Any]] = set()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        pending = [t for t in background if not t.done()]
        if pending:
            logger.info("Cancelling %d in-flight run(s) on shutdown", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    app = FastAPI(title="pokefusion", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.runs = runs

    gate = orchestrator.gate

    @app.exception_handler(PaymentRequiredError)
    async def _payment_required(_: Request, exc: PaymentRequiredError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content={"error": "Insufficient credits", "paymentRequired": True, "balance": exc.balance},
        )

    def current_user(request: Request) -> str:
        try:
            return authenticator.authenticate(request.headers)
        except AuthenticationError as e:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    async def parse_request(request: Request) -> GenerationRequest:
        try:
            payload = await request.json()
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be JSON") from e
        if not isinstance(payload, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be a JSON object")
        try:
            return FusionRequestBody.model_validate(payload).to_generation_request()
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=[{"loc": err["loc"], "msg": err["msg"]} for err in e.errors()],
            ) from e

    async def prepare_run(request: Request, user_id: str) -> GenerationRequest:
        gen_request = await parse_request(request)
        await ensure_signup_credits(gate, user_id, settings.signup_credits)
        await orchestrator.check_precondition(user_id)
        return gen_request

    def spawn(coro: Any, correlation_id: str) -> None:
        task = asyncio.create_task(coro, name=f"fusion-{correlation_id}")
        background.add(task)
        task.add_done_callback(lambda t: _on_run_done(t, background))

    # --- Generation ---

    @app.post("/api/generate")
    async def generate(request: Request, user_id: str = Depends(current_user)) -> JSONResponse:
        gen_request = await parse_request(request)
        await ensure_signup_credits(gate, user_id, settings.signup_credits)
        outcome = await orchestrator.run(gen_request, user_id)
        return _json(GenerateResponse.from_outcome(outcome, gen_request))

    @app.post("/api/generate/stream")
    async def generate_stream(request: Request, user_id: str = Depends(current_user)) -> StreamingResponse:
        gen_request = await prepare_run(request, user_id)
        channel = StreamProgressChannel()
        spawn(
            orchestrator.run(gen_request, user_id, channel, precondition_checked=True),
            gen_request.correlation_id,
        )
        return StreamingResponse(
            sse_stream(channel, keepalive_s=settings.sse_keepalive_s),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.post("/api/generate/start", status_code=status.HTTP_202_ACCEPTED)
    async def generate_start(request: Request, user_id: str = Depends(current_user)) -> JSONResponse:
        gen_request = await prepare_run(request, user_id)
        evicted = runs.evict_expired()
        for cid in [c for c in run_owners if runs.get(c) is None]:
            run_owners.pop(cid, None)
        if evicted:
            logger.debug("Evicted %d finished run(s)", evicted)

        cid = gen_request.correlation_id
        channel = runs.create(cid)
        run_owners[cid] = user_id
        spawn(orchestrator.run(gen_request, user_id, channel, precondition_checked=True), cid)
        return _json(
            StartResponse(correlation_id=cid, poll_url=f"/api/prediction/{cid}"),
            status_code=status.HTTP_202_ACCEPTED,
        )

    @app.get("/api/prediction/{correlation_id}")
    async def prediction(
        correlation_id: str,
        cursor: int = Query(default=0, ge=0),
        user_id: str = Depends(current_user),
    ) -> JSONResponse:
        channel = runs.get(correlation_id)
        if channel is None or run_owners.get(correlation_id) != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown run")
        snapshot = channel.poll(cursor)
        return _json(PollResponse(
            correlation_id=correlation_id,
            events=snapshot.events,
            next_cursor=snapshot.next_cursor,
            done=snapshot.done,
            outcome=snapshot.outcome,
        ))

    # --- Credits ---

    @app.get("/api/credits/balance")
    async def credits_balance(user_id: str = Depends(current_user)) -> JSONResponse:
        await ensure_signup_credits(gate, user_id, settings.signup_credits)
        return _json(BalanceResponse(balance=await gate.balance(user_id)))

    @app.post("/api/credits/refund")
    async def credits_refund(body: RefundBody, user_id: str = Depends(current_user)) -> JSONResponse:
        try:
            await gate.refund(user_id, body.correlation_id)
        except RefundRejectedError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
        except LedgerError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return _json(BalanceResponse(balance=await gate.balance(user_id)))

    # --- Gallery ---

    @app.get("/api/fusions")
    async def list_fusions(
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
        user_id: str = Depends(current_user),
    ) -> JSONResponse:
        records = await gate.store.list_fusions(user_id=user_id, limit=limit, offset=offset)
        return _json(FusionListResponse(fusions=records))

    @app.get("/api/fusions/{record_id}")
    async def get_fusion(record_id: str, user_id: str = Depends(current_user)) -> JSONResponse:
        record = await gate.store.get_fusion(record_id)
        if record is None or record.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fusion not found")
        return _json(record)

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=model.model_dump(mode="json", by_alias=True))


def _on_run_done(task: asyncio.Task[Any], background: set[asyncio.Task[Any]]) -> None:
    background.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background run %s failed: %s", task.get_name(), exc, exc_info=exc)
