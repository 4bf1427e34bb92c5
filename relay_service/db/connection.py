import logging

import oracledb

oracledb.defaults.thin_mode = True

logger = logging.getLogger(__name__)


class OracleConnectionManager:
    """Owns the async connection pool for the accounts system-of-record.

    The thin driver is used throughout; ``RelaySettings.get_dsn`` decides
    between a plain host:port/service DSN and a full connect descriptor.
    """

    def __init__(self, settings):
        self.settings = settings
        self.pool: oracledb.AsyncConnectionPool | None = None

    async def create_pool(self) -> oracledb.AsyncConnectionPool:
        logger.info("Connecting to system-of-record at %s", self.settings.get_dsn())
        self.pool = oracledb.create_pool_async(
            user=self.settings.oracle_user,
            password=self.settings.oracle_password,
            dsn=self.settings.get_dsn(),
            min=self.settings.oracle_pool_min,
            max=self.settings.oracle_pool_max,
        )
        # The pool is lazy; acquire once so a bad DSN fails at startup.
        async with self.pool.acquire() as conn:
            await conn.ping()
        return self.pool

    async def close_pool(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
