"""FastAPI server for the FrontDesk scheduling agent and its mock EHR backend.

Run with:
    uvicorn frontdesk.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from frontdesk.api.routes import router
from frontdesk.config import CORS_ORIGINS, EHR_BASE_URL, MODEL_NAME, SERVER_HOST, SERVER_PORT
from frontdesk.ehr.routes import router as ehr_router
from frontdesk.services.log_broadcaster import broadcaster
from frontdesk.sessions import SessionRegistry

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
broadcaster.install()
logger = logging.getLogger(__name__)


# ── Lifespan: initialise shared resources ────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create the session registry once and keep it in app state."""
    application.state.sessions = SessionRegistry()
    logger.info("Agent ready (model: %s, EHR: %s)", MODEL_NAME, EHR_BASE_URL)
    yield
    # Sessions are in-memory only; nothing to persist on shutdown.


app = FastAPI(
    title="FrontDesk Scheduling Agent",
    description=(
        "AI front desk receptionist — finds locations, clinicians and open "
        "slots, registers patients and books appointments."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (``X-Request-ID``) for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")
app.include_router(ehr_router, prefix="/api/ehr", tags=["ehr"])


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "FrontDesk Scheduling Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
        "chat": "/api/chat",
        "ehr": "/api/ehr",
    }


if __name__ == "__main__":
    logger.info("Starting FrontDesk API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "frontdesk.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
