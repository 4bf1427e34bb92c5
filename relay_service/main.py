import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import RelaySettings
from .db.connection import OracleConnectionManager
from .db.redis import RedisBackend
from .db.schema import init_schema
from .errors import BackendError, NotFoundError, RelayError
from .services import AccountStore, AuthService, MailboxService, SessionService, ValueService
from .api import api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = RelaySettings()
    app.state.settings = settings

    try:
        backend = await RedisBackend.open(settings)
        logger.info("Connected to Redis at %s:%d/%d", settings.redis_host, settings.redis_port, settings.redis_db)
    except RelayError as e:
        logger.error("Failed to connect to Redis: %s", e)
        backend = None
    app.state.backend = backend

    conn_mgr = OracleConnectionManager(settings)
    try:
        pool = await conn_mgr.create_pool()
        logger.info("Oracle connection pool created (min=%d, max=%d)", settings.oracle_pool_min, settings.oracle_pool_max)
    except Exception as e:
        logger.error("Failed to create Oracle connection pool: %s", e)
        pool = None
    app.state.pool = pool

    # Relay operations need Redis only; account checks need both backends.
    ttl = settings.session_ttl_seconds
    app.state.session_service = SessionService(backend, ttl=ttl) if backend else None
    app.state.mailbox_service = MailboxService(backend, ttl=ttl) if backend else None
    app.state.value_service = ValueService(backend, ttl=settings.value_ttl_seconds) if backend else None
    app.state.auth_service = AuthService(
        backend,
        AccountStore(pool, timeout=settings.backend_timeout_seconds),
        account_ttl=settings.account_cache_ttl_seconds,
        keys_ttl=settings.key_cache_ttl_seconds,
    ) if backend and pool else None

    if settings.auto_init and pool:
        try:
            result = await init_schema(pool)
            logger.info("Auto-init schema: %s", result)
        except Exception as e:
            logger.warning("Auto-init failed (run POST /api/init manually): %s", e)

    yield

    if backend:
        await backend.close()
        logger.info("Redis connection closed")
    if pool:
        await conn_mgr.close_pool()
        logger.info("Oracle connection pool closed")


app = FastAPI(
    title="Vault Relay Service",
    version="0.1.0",
    description="Store-and-forward relay for multi-party signing sessions",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    if isinstance(exc, BackendError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    elif not isinstance(exc, NotFoundError):
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    settings = RelaySettings()
    uvicorn.run(
        "relay_service.main:app",
        host="0.0.0.0",
        port=settings.relay_service_port,
    )
