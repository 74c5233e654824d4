import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError

from .config import settings
from .errors import DomainError
from .middleware.correlation import correlation_middleware
from .redis_client import redis_client
from .routers import availability, claims, inventory, payouts, snapshots, waitlist
from .services.waitlist import waitlist_sweep_loop

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Er ging iets mis aan onze kant. Probeer het over een paar minuten opnieuw."


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = None
    if settings.waitlist_sweep_enabled:
        task = asyncio.create_task(waitlist_sweep_loop(redis_client))
    yield
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Adslots API", lifespan=lifespan)

app.middleware("http")(correlation_middleware)

app.include_router(availability.router)
app.include_router(waitlist.router)
app.include_router(claims.router)
app.include_router(snapshots.router)
app.include_router(payouts.router)
app.include_router(inventory.router)


def _correlation_id(request: Request):
    return getattr(request.state, "correlation_id", None)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "code": exc.code,
            "correlation_id": _correlation_id(request),
        },
    )


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.exception(f"Database unavailable [correlation_id={_correlation_id(request)}]")
    return JSONResponse(
        status_code=503,
        content={"detail": RETRY_MESSAGE, "code": "service_unavailable", "correlation_id": _correlation_id(request)},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path} [correlation_id={_correlation_id(request)}]")
    return JSONResponse(
        status_code=500,
        content={"detail": RETRY_MESSAGE, "code": "internal_error", "correlation_id": _correlation_id(request)},
    )


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False
    return {"redis": redis_ok}
