"""FastAPI application for the exchange.

Note: Authentication is intentionally not implemented. The `caller` field in
request bodies is trusted, which makes this service a local test harness for
the exchange rather than a public endpoint.
"""

import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dex import __version__
from dex.api.endpoints import router
from dex.errors import DexError, PairExists, PairNotFound
from dex.models.api import ErrorResponse

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("DEX_HOST", "0.0.0.0")
PORT = int(os.environ.get("DEX_PORT", "8000"))
DEBUG = os.environ.get("DEX_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

# HTTP status for each rejected-operation class (400 for everything else)
ERROR_STATUS: dict[type[DexError], int] = {
    PairNotFound: 404,
    PairExists: 409,
}

app = FastAPI(
    title="SimpleDEX",
    description="Constant product exchange: pair registry, pools and router",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


@app.exception_handler(DexError)
async def dex_error_handler(request: Request, exc: DexError) -> JSONResponse:
    """Turn a rejected exchange operation into a 4xx JSON error."""
    status = ERROR_STATUS.get(type(exc), 400)
    logger.warning(
        "operation_rejected",
        path=request.url.path,
        error=exc.code,
        detail=str(exc),
        status=status,
    )
    return JSONResponse(status_code=status, content={"error": exc.code, "detail": str(exc)})


app.include_router(
    router,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Run the exchange API server.

    Configuration via environment variables:
    - DEX_HOST: Host to bind to (default: 0.0.0.0)
    - DEX_PORT: Port to bind to (default: 8000)
    - DEX_DEBUG: Enable debug/reload mode (default: false)
    - DEX_FEE_NUMERATOR / DEX_FEE_DENOMINATOR / DEX_MINIMUM_LIQUIDITY /
      DEX_RATIO_POLICY: pool configuration (see dex.config)
    """
    uvicorn.run(
        "dex.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
