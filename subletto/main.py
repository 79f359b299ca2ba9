"""FastAPI application for the Subletto room reservation service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .core.config import settings
from .db.session import SessionLocal
from .routers import bookings, checkout, commitments, events, listings
from .services.errors import ReservationError
from .services.sweeper import ExpirySweeper

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper: ExpirySweeper | None = None
    if settings.expiry_sweep_enabled:
        sweeper = ExpirySweeper(SessionLocal, interval_seconds=settings.expiry_sweep_interval_seconds)
        sweeper.start()
    app.state.sweeper = sweeper
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()


app = FastAPI(title="Subletto Reservations API", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    """Render domain failures as ``{"error": code, "detail": message}``."""

    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


app.include_router(listings.router, prefix="/api/listings", tags=["listings"])
app.include_router(commitments.slots_router, prefix="/api/slots", tags=["commitments"])
app.include_router(commitments.router, prefix="/api/commitments", tags=["commitments"])
app.include_router(checkout.router, prefix="/api/checkout", tags=["checkout"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["bookings"])
app.include_router(events.router, prefix="/api", tags=["events"])


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    return PlainTextResponse("User-agent: *\nDisallow:")
