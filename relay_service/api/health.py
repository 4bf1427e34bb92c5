import logging

from fastapi import APIRouter, Request

from ..db.schema import ALL_TABLES, check_tables_exist, get_schema_version
from ..errors import RelayError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ping")
async def ping():
    return {"status": "ok"}


@router.get("/api/health")
async def health(request: Request):
    pool = request.app.state.pool
    backend = request.app.state.backend

    redis_info = {"connected": False}
    if backend:
        try:
            redis_info["connected"] = await backend.ping()
        except RelayError as e:
            redis_info["error"] = e.detail

    pool_info = {"min": 0, "max": 0, "busy": 0, "open": 0}
    tables = {}
    schema_version = "unknown"
    if pool:
        pool_info = {
            "min": pool.min,
            "max": pool.max,
            "busy": pool.busy,
            "open": pool.opened,
        }
        try:
            tables = await check_tables_exist(pool)
        except Exception as e:
            logger.warning("Table check failed: %s", e)
            tables = {t: False for t in ALL_TABLES}
        schema_version = await get_schema_version(pool)

    return {
        "status": "ok",
        "redis": redis_info,
        "pool": pool_info,
        "tables": tables,
        "schema_version": schema_version,
    }
