"""
apilabs/app.py

FastAPI application entrypoint for the APILabs banking service.

This module wires together:
- Logging configuration (file-based under LOG_DIR)
- CORS and request-logging middleware
- Banking routers under /api/v1/banking (accounts & transactions, transfers,
  loans, cards, beneficiaries, notifications WebSocket)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apilabs import __version__, config
from apilabs.db.session import engine, init_db
from apilabs.logging_config import get_logger, setup_logging
from apilabs.api.accounts import router as accounts_router
from apilabs.api.beneficiaries import router as beneficiaries_router
from apilabs.api.cards import router as cards_router
from apilabs.api.loans import router as loans_router
from apilabs.api.notifications import router as notifications_router
from apilabs.api.transfers import router as transfers_router

# Configure logging before creating the app
setup_logging()
logger = get_logger("apilabs")

app = FastAPI(title="APILabs Banking API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Lightweight request logger to help trace API traffic.
    """
    try:
        body = await request.body()
        logger.info(
            "HTTP %s %s from %s body=%s",
            request.method,
            request.url.path,
            request.client.host if request.client else "?",
            body.decode(errors="ignore")[:200],
        )
    except Exception:
        logger.exception("Failed to read request body for logging")
    response = await call_next(request)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.warning("Validation failed %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.get("/api/health")
async def health():
    """
    Simple health check endpoint.
    """
    return {"status": "healthy"}


# Include domain routers
for _router in (
    accounts_router,
    transfers_router,
    loans_router,
    cards_router,
    beneficiaries_router,
    notifications_router,
):
    app.include_router(_router, prefix=config.API_PREFIX)


@app.on_event("startup")
async def on_startup():
    logger.info("APILabs banking starting up (database=%s)", engine.url.render_as_string(hide_password=True))
    if config.DB_AUTO_CREATE:
        await init_db()


@app.on_event("shutdown")
async def on_shutdown():
    try:
        await engine.dispose()
    except Exception:
        logger.exception("Error disposing engine on shutdown")
    logger.info("APILabs banking shutting down")


def run() -> None:
    import uvicorn

    uvicorn.run("apilabs.app:app", host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
