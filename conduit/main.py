import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from conduit import __version__
from conduit.cache import cache
from conduit.config import settings
from conduit.database import init_models
from conduit.errors import (
    Conflict,
    ConduitError,
    Forbidden,
    InvalidInput,
    InvalidQuery,
    NotFound,
    ServiceUnavailable,
    Unauthorized,
)
from conduit.logging_config import setup_logging
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.CREATE_SCHEMA_ON_STARTUP:
        await init_models()
    await cache.connect()  # the app keeps working without Redis
    logger.info("Conduit %s started (env=%s)", __version__, settings.APP_ENV)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Conduit Articles API",
    description="Articles, comments, favorites and feeds for a Conduit-style blog",
    version=__version__,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(profiles.router)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _error_messages(exc: ConduitError) -> dict[str, list[str]]:
    if isinstance(exc, InvalidInput):
        return {exc.field: ["can't be blank"]}
    if isinstance(exc, InvalidQuery):
        return {exc.parameter: [f"must be a non-negative integer, got {exc.value!r}"]}
    if isinstance(exc, Unauthorized):
        return {"authorization": ["authentication required"]}
    if isinstance(exc, Forbidden):
        if exc.comment_id is not None:
            return {"comment": [f"not allowed to delete comment {exc.comment_id}"]}
        return {"article": [f"not allowed to modify article {exc.slug!r}"]}
    if isinstance(exc, NotFound):
        ident = exc.username or (exc.comment_id if exc.comment_id is not None else exc.slug)
        return {exc.resource: [f"{exc.resource} {ident!r} not found"]}
    if isinstance(exc, Conflict):
        return {exc.field: ["has already been taken"]}
    if isinstance(exc, ServiceUnavailable):
        return {exc.collaborator: ["temporarily unavailable"]}
    return {"error": ["internal error"]}


@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed: %s %s", request.method, request.url.path, type(exc).__name__, exc.context()
        )
    return JSONResponse(status_code=exc.status_code, content={"errors": _error_messages(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # Drop the "body"/"query"/"path" prefix from the location.
        field = ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        errors.setdefault(field, []).append(error["msg"])
    return JSONResponse(status_code=400, content={"errors": errors})


@app.get("/health")
async def health():
    return {"status": "healthy", "version": __version__, "cache": cache.stats}
