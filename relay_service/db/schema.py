import logging

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "0.1.0"

DDL_STATEMENTS = [
    # ---- RELAY_META ----
    """
    CREATE TABLE RELAY_META (
        meta_key   VARCHAR2(100)  PRIMARY KEY,
        meta_value VARCHAR2(4000) NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # ---- RELAY_USERS ----
    """
    CREATE TABLE RELAY_USERS (
        id           NUMBER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        api_key      VARCHAR2(200) NOT NULL UNIQUE,
        created_at   TIMESTAMP     DEFAULT SYS_EXTRACT_UTC(SYSTIMESTAMP),
        expired_at   TIMESTAMP,
        no_of_vaults NUMBER(10)    DEFAULT 0,
        is_paid      NUMBER(1)     DEFAULT 0
    )
    """,
    # ---- RELAY_VAULTS ----
    """
    CREATE TABLE RELAY_VAULTS (
        id                 NUMBER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        user_id            NUMBER         NOT NULL REFERENCES RELAY_USERS(id) ON DELETE CASCADE,
        vault_pubkey_ecdsa VARCHAR2(512)  NOT NULL,
        vault_pubkey_eddsa VARCHAR2(512)  NOT NULL,
        created_at         TIMESTAMP      DEFAULT SYS_EXTRACT_UTC(SYSTIMESTAMP)
    )
    """,
    # ---- RELAY_PAYMENTS ----
    """
    CREATE TABLE RELAY_PAYMENTS (
        id         NUMBER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        user_id    NUMBER         NOT NULL REFERENCES RELAY_USERS(id) ON DELETE CASCADE,
        tx_id      VARCHAR2(200)  NOT NULL,
        amount     NUMBER(18,8)   NOT NULL,
        created_at TIMESTAMP      DEFAULT SYS_EXTRACT_UTC(SYSTIMESTAMP)
    )
    """,
]

INDEX_STATEMENTS = [
    "CREATE INDEX IDX_VAULTS_USER ON RELAY_VAULTS(user_id)",
    "CREATE INDEX IDX_PAYMENTS_USER ON RELAY_PAYMENTS(user_id)",
]

ALL_TABLES = [
    "RELAY_META",
    "RELAY_USERS",
    "RELAY_VAULTS",
    "RELAY_PAYMENTS",
]

# ORA-00955: name already used, ORA-01408: column list already indexed
_ALREADY_EXISTS = ("ORA-00955", "ORA-01408")


async def init_schema(pool) -> dict:
    """Create all tables and indexes idempotently. Returns status dict."""
    tables_created = []
    indexes_created = []
    errors = []

    async with pool.acquire() as conn:
        for ddl in DDL_STATEMENTS:
            table_name = _extract_table_name(ddl)
            try:
                cursor = conn.cursor()
                await cursor.execute(ddl)
                tables_created.append(table_name)
                logger.info("Created table %s", table_name)
            except Exception as e:
                if _already_exists(e):
                    logger.debug("Table %s already exists", table_name)
                else:
                    logger.error("Error creating table %s: %s", table_name, e)
                    errors.append({"table": table_name, "error": str(e)})

        for idx_ddl in INDEX_STATEMENTS:
            idx_name = _extract_index_name(idx_ddl)
            try:
                cursor = conn.cursor()
                await cursor.execute(idx_ddl)
                indexes_created.append(idx_name)
                logger.info("Created index %s", idx_name)
            except Exception as e:
                if _already_exists(e):
                    logger.debug("Index %s already exists", idx_name)
                else:
                    logger.error("Error creating index %s: %s", idx_name, e)
                    errors.append({"index": idx_name, "error": str(e)})

        await conn.commit()

    await set_schema_version(pool, SCHEMA_VERSION)

    return {
        "tables_created": tables_created,
        "indexes_created": indexes_created,
        "errors": errors,
    }


async def check_tables_exist(pool) -> dict[str, bool]:
    """Map each relay table name to whether it exists."""
    async with pool.acquire() as conn:
        cursor = conn.cursor()
        await cursor.execute(
            "SELECT table_name FROM user_tables WHERE table_name LIKE 'RELAY_%'"
        )
        rows = await cursor.fetchall()
    existing = {row[0] for row in rows}
    return {table: table in existing for table in ALL_TABLES}


async def get_schema_version(pool) -> str:
    try:
        async with pool.acquire() as conn:
            cursor = conn.cursor()
            await cursor.execute(
                "SELECT meta_value FROM RELAY_META WHERE meta_key = 'schema_version'"
            )
            row = await cursor.fetchone()
            return row[0] if row else "unknown"
    except Exception:
        return "unknown"


async def set_schema_version(pool, version: str):
    async with pool.acquire() as conn:
        cursor = conn.cursor()
        await cursor.execute(
            """
            MERGE INTO RELAY_META m
            USING (SELECT 'schema_version' AS meta_key FROM DUAL) s
            ON (m.meta_key = s.meta_key)
            WHEN MATCHED THEN
                UPDATE SET meta_value = :val, updated_at = CURRENT_TIMESTAMP
            WHEN NOT MATCHED THEN
                INSERT (meta_key, meta_value) VALUES ('schema_version', :val)
            """,
            {"val": version},
        )
        await conn.commit()


def _already_exists(exc: Exception) -> bool:
    return any(code in str(exc) for code in _ALREADY_EXISTS)


def _extract_table_name(ddl: str) -> str:
    parts = ddl.strip().split()
    for i, p in enumerate(parts):
        if p.upper() == "TABLE" and i + 1 < len(parts):
            return parts[i + 1].strip("(").upper()
    return "UNKNOWN"


def _extract_index_name(ddl: str) -> str:
    parts = ddl.strip().split()
    for i, p in enumerate(parts):
        if p.upper() == "INDEX" and i + 1 < len(parts):
            return parts[i + 1].strip().upper()
    return "UNKNOWN"
