"""HTTP entry point for the dashboard.

POST /sync     Authorization: Bearer <user jwt>
               200 {"success": true, "tradesFound": n, "message": "..."}
               500 {"success": false, "error": "..."}
OPTIONS /sync  CORS pre-flight, empty 200
GET /health
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response

from tradelog.config.settings import settings
from tradelog.config.logging import logger
from tradelog.core.exceptions import AppError
from tradelog.core.models import SyncSummary
from tradelog.services.syncer import SyncService

CORS_HEADERS = {
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

app = FastAPI(
    title="tradelog",
    description="Telegram trade-close ingestion for the performance dashboard",
    version="1.0.0",
)

_origins = (settings.CORS_ALLOW_ORIGINS if settings else "*").split(",")
allowed_origins = [o.strip() for o in _origins if o.strip()]


def cors_headers(origin: Optional[str]) -> Dict[str, str]:
    """Headers for every response; an origin outside the list gets no Allow-Origin."""
    headers = dict(CORS_HEADERS)
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


@app.middleware("http")
async def add_cors_headers(request: Request, call_next):
    # pre-flights must reach the OPTIONS route so its body stays empty
    response = await call_next(request)
    response.headers.update(cors_headers(request.headers.get("origin")))
    return response


# swapped out in tests
service_factory = SyncService


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _json(summary: SyncSummary) -> JSONResponse:
    return JSONResponse(
        content=summary.to_dict(),
        status_code=200 if summary.success else 500,
    )


@app.options("/sync")
def sync_preflight() -> Response:
    return Response(status_code=200)


@app.post("/sync")
def sync(authorization: Optional[str] = Header(default=None)) -> JSONResponse:
    try:
        service = service_factory()
        summary = service.run(bearer_token(authorization))
    except AppError as e:
        logger.error(f"Sync failed: {e}")
        summary = SyncSummary.failure(str(e))
    except Exception as e:
        logger.exception("Unexpected error during sync")
        summary = SyncSummary.failure(str(e) or "Unknown error")
    return _json(summary)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "configured": settings is not None,
    }
