"""
FastAPI application serving the apply-leave workflow.
Each session id gets its own form state; the caller's bearer token is
forwarded to the mess backend.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from messleave.apply_leave import ApplyLeaveSession
from messleave.config import settings
from messleave.plans import can_cancel, can_update
from messleave.sessions import SessionRegistry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class FormUpdateRequest(BaseModel):
    """Request model for a single form field change."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"field": "end_date", "value": "2025-11-08"}}
    )

    field: str = Field(..., description="Form field name, e.g. end_date")
    value: Any = Field(None, description="New value for the field")


class UpdateModeRequest(BaseModel):
    """Request model for editing an existing leave."""

    leave: dict[str, Any] = Field(..., description="Leave history entry to update")


class SessionStateResponse(BaseModel):
    session_id: str
    state: dict[str, Any]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    api_circuit_breaker: dict


registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Get or create global session registry."""
    global registry
    if registry is None:
        registry = SessionRegistry()
    return registry


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    return token.strip() if scheme.lower() == "bearer" and token else None


def _state_response(session_id: str, session: ApplyLeaveSession) -> SessionStateResponse:
    state = session.state.to_dict()
    # Per-entry action flags for the history list
    state["leave_history"] = [
        {**item, "canCancel": can_cancel(item), "canUpdate": can_update(item)}
        for item in state["leave_history"]
    ]
    return SessionStateResponse(session_id=session_id, state=state)


async def _session(session_id: str, authorization: str | None) -> ApplyLeaveSession:
    return await get_registry().get(session_id, _bearer_token(authorization))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Mess Leave API")
    logger.info(f"Environment: {settings.environment}, backend: {settings.api_base_url}")

    yield

    logger.info("Shutting down Mess Leave API")
    await get_registry().close_all()


app = FastAPI(
    title="Mess Leave API",
    description="Leave request workflow for mess meal-plan subscriptions",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root():
    return {"message": "Mess Leave API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Service status and backend circuit breaker state."""
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        api_circuit_breaker=get_registry().circuit_breaker.get_state(),
    )


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    reg = get_registry()
    return {
        "circuit_breaker": reg.circuit_breaker.get_state(),
        "active_sessions": len(reg),
        "environment": settings.environment,
    }


@app.post("/sessions/{session_id}/load", response_model=SessionStateResponse, tags=["Leave"])
async def load_session(session_id: str, authorization: str | None = Header(None)):
    """Load plans and leave history into the session's form."""
    session = await _session(session_id, authorization)
    try:
        await session.load()
    except Exception as e:
        logger.error(f"Error loading session {session_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred loading leave data. Please try again.",
        ) from e
    return _state_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionStateResponse, tags=["Leave"])
async def get_session_state(session_id: str, authorization: str | None = Header(None)):
    session = await _session(session_id, authorization)
    return _state_response(session_id, session)


@app.patch("/sessions/{session_id}/form", response_model=SessionStateResponse, tags=["Leave"])
async def update_form(
    session_id: str, request: FormUpdateRequest, authorization: str | None = Header(None)
):
    """
    Change one form field.

    Changing dates, plans or meal selections re-runs the backend preview, so
    the returned state carries fresh totals.
    """
    session = await _session(session_id, authorization)
    try:
        await session.update_field(request.field, request.value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return _state_response(session_id, session)


@app.post("/sessions/{session_id}/submit", response_model=SessionStateResponse, tags=["Leave"])
async def submit(session_id: str, authorization: str | None = Header(None)):
    """Submit the form as a new leave, or as an extension in update mode."""
    session = await _session(session_id, authorization)
    await session.submit_leave_request()
    return _state_response(session_id, session)


@app.post("/sessions/{session_id}/update-mode", response_model=SessionStateResponse, tags=["Leave"])
async def start_update_mode(
    session_id: str, request: UpdateModeRequest, authorization: str | None = Header(None)
):
    session = await _session(session_id, authorization)
    await session.start_update_mode(request.leave)
    return _state_response(session_id, session)


@app.delete(
    "/sessions/{session_id}/update-mode", response_model=SessionStateResponse, tags=["Leave"]
)
async def cancel_update_mode(session_id: str, authorization: str | None = Header(None)):
    session = await _session(session_id, authorization)
    session.cancel_update_mode()
    return _state_response(session_id, session)


@app.delete(
    "/sessions/{session_id}/leaves/{leave_id}", response_model=SessionStateResponse, tags=["Leave"]
)
async def cancel_leave(session_id: str, leave_id: str, authorization: str | None = Header(None)):
    session = await _session(session_id, authorization)
    await session.cancel_leave_request(leave_id)
    return _state_response(session_id, session)


@app.post(
    "/sessions/{session_id}/notification/hide",
    response_model=SessionStateResponse,
    tags=["Leave"],
)
async def hide_notification(session_id: str, authorization: str | None = Header(None)):
    session = await _session(session_id, authorization)
    session.hide_notification()
    return _state_response(session_id, session)


@app.delete("/sessions/{session_id}", tags=["Leave"])
async def reset_session(session_id: str, authorization: str | None = Header(None)):
    """Drop the caller's session and its form state."""
    removed = await get_registry().reset(session_id, _bearer_token(authorization))
    return {"message": f"Session reset for {session_id}", "session_id": session_id, "removed": removed}


@app.get("/ready")
def ready():
    return {"status": "ready"}


if __name__ == "__main__":
    uvicorn.run(
        "messleave.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8080)),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
