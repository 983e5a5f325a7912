"""
FastAPI entry point: local development server.

Exposes the event handler over HTTP so EventBridge payloads can be replayed
locally, plus a manual sync endpoint. Settings and adapters are wired once at
startup; a missing setting stops the server before it accepts requests.

Run locally:
    uvicorn secret_sync.infrastructure.entrypoints.fastapi_app:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.domain.entities.secret import SecretIdentity
from secret_sync.domain.errors import (
    MalformedPayloadError,
    SecretNotFoundError,
    SecretSyncError,
    UnauthorizedError,
    UnavailableError,
)
from secret_sync.infrastructure.config.settings import SyncSettings
from secret_sync.infrastructure.entrypoints.event_router import handle_event
from secret_sync.infrastructure.entrypoints.wiring import build_use_case
from secret_sync.infrastructure.logging_config import configure_logging


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    return SyncSettings.from_env()


@lru_cache(maxsize=1)
def get_use_case() -> SyncSecretUseCase:
    return build_use_case(get_settings())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.dependency_overrides.get(get_settings, get_settings)()
    configure_logging(settings.log_level)
    app.dependency_overrides.get(get_use_case, get_use_case)()
    yield


app = FastAPI(title="secret-sync", lifespan=lifespan)


class SyncRequest(BaseModel):
    source_name: str = Field(min_length=1)
    namespace: Optional[str] = None
    name: Optional[str] = None


_STATUS_BY_ERROR = (
    (SecretNotFoundError, 404),
    (MalformedPayloadError, 422),
    (UnauthorizedError, 502),
    (UnavailableError, 503),
)


def _http_error(exc: SecretSyncError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.post("/events")
def receive_event(
    event: dict[str, Any] = Body(...),
    settings: SyncSettings = Depends(get_settings),
    use_case: SyncSecretUseCase = Depends(get_use_case),
):
    """Handle an EventBridge Secrets Manager event exactly as the Lambda does."""
    try:
        return handle_event(event, use_case, settings)
    except SecretSyncError as exc:
        raise _http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/sync")
def sync_secret(
    body: SyncRequest,
    settings: SyncSettings = Depends(get_settings),
    use_case: SyncSecretUseCase = Depends(get_use_case),
):
    identity = SecretIdentity(
        namespace=body.namespace or settings.target_namespace,
        name=body.name or body.source_name,
        source_name=body.source_name,
    )
    try:
        result = use_case.execute(identity)
    except SecretSyncError as exc:
        raise _http_error(exc) from exc
    return {
        "source": identity.source_name,
        "namespace": identity.namespace,
        "name": identity.name,
        "decision": result.decision.value,
    }


@app.get("/health")
async def health():
    return {"status": "ok"}
