import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import oracledb

from ..errors import BackendError, LimitReachedError, NotFoundError, bounded
from ..models.accounts import Account

logger = logging.getLogger(__name__)


class AccountStore:
    """System-of-record access for accounts, payments and vault keys.

    This is the authoritative store; ``AuthService`` only ever reads through
    it into the cache. Each method is one bounded round of SQL on a pooled
    connection, and oracledb failures surface as ``BackendError``.
    """

    def __init__(self, pool, timeout: float = 5.0):
        self.pool = pool
        self.timeout = timeout

    async def lookup_account(self, api_key: str) -> Account | None:
        async with self._call("lookup account"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    """
                    SELECT id, api_key, created_at, expired_at, no_of_vaults, is_paid
                    FROM RELAY_USERS
                    WHERE api_key = :api_key
                    """,
                    {"api_key": api_key},
                )
                row = await cursor.fetchone()
        return _row_to_account(row) if row else None

    async def create_account(self, api_key: str) -> str:
        async with self._call("create account"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    "INSERT INTO RELAY_USERS (api_key) VALUES (:api_key)",
                    {"api_key": api_key},
                )
                await conn.commit()
        return api_key

    async def update_entitlement(self, api_key: str, expired_at: datetime,
                                 no_of_vaults: int, is_paid: bool,
                                 payment_ref: str, amount: float) -> None:
        """Apply a paid entitlement and record the payment that bought it."""
        async with self._call("update entitlement"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    """
                    UPDATE RELAY_USERS
                    SET expired_at = :expired_at, no_of_vaults = :no_of_vaults,
                        is_paid = :is_paid
                    WHERE api_key = :api_key
                    """,
                    {
                        "expired_at": _to_utc_naive(expired_at),
                        "no_of_vaults": no_of_vaults,
                        "is_paid": 1 if is_paid else 0,
                        "api_key": api_key,
                    },
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("account not found")
                await cursor.execute(
                    """
                    INSERT INTO RELAY_PAYMENTS (user_id, tx_id, amount)
                    VALUES ((SELECT id FROM RELAY_USERS WHERE api_key = :api_key),
                            :tx_id, :amount)
                    """,
                    {"api_key": api_key, "tx_id": payment_ref, "amount": amount},
                )
                await conn.commit()

    async def list_authorized_keys(self, account_id: int) -> list[str]:
        """Every ECDSA and EdDSA public key registered for the account."""
        async with self._call("list vault keys"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    """
                    SELECT vault_pubkey_ecdsa, vault_pubkey_eddsa
                    FROM RELAY_VAULTS
                    WHERE user_id = :user_id
                    """,
                    {"user_id": account_id},
                )
                rows = await cursor.fetchall()
        keys = []
        for ecdsa, eddsa in rows:
            keys.extend((ecdsa, eddsa))
        return keys

    async def count_keys(self, account_id: int) -> int:
        async with self._call("count vaults"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    "SELECT COUNT(*) FROM RELAY_VAULTS WHERE user_id = :user_id",
                    {"user_id": account_id},
                )
                row = await cursor.fetchone()
        return row[0] if row else 0

    async def register_key(self, account_id: int, ecdsa_key: str, eddsa_key: str,
                           max_allowed: int) -> bool:
        """Register a vault key pair for the account.

        Returns False when the exact pair is already registered, True when it
        was inserted. Raises ``LimitReachedError`` when the account already
        holds ``max_allowed`` vaults.

        The count and the insert are separate statements with no lock held,
        so concurrent registrations can each pass the limit check and end up
        one vault over ``max_allowed``.
        """
        async with self._call("register vault"):
            async with self.pool.acquire() as conn:
                cursor = conn.cursor()
                await cursor.execute(
                    """
                    SELECT COUNT(*) FROM RELAY_VAULTS
                    WHERE user_id = :user_id
                      AND vault_pubkey_ecdsa = :ecdsa
                      AND vault_pubkey_eddsa = :eddsa
                    """,
                    {"user_id": account_id, "ecdsa": ecdsa_key, "eddsa": eddsa_key},
                )
                row = await cursor.fetchone()
                if row and row[0] > 0:
                    return False

                await cursor.execute(
                    "SELECT COUNT(*) FROM RELAY_VAULTS WHERE user_id = :user_id",
                    {"user_id": account_id},
                )
                row = await cursor.fetchone()
                total = row[0] if row else 0
                if total >= max_allowed:
                    raise LimitReachedError("vault limit reached")

                await cursor.execute(
                    """
                    INSERT INTO RELAY_VAULTS (user_id, vault_pubkey_ecdsa, vault_pubkey_eddsa)
                    VALUES (:user_id, :ecdsa, :eddsa)
                    """,
                    {"user_id": account_id, "ecdsa": ecdsa_key, "eddsa": eddsa_key},
                )
                await conn.commit()
        logger.info("Registered vault for account %s (%d/%d)", account_id, total + 1, max_allowed)
        return True

    @asynccontextmanager
    async def _call(self, what: str):
        try:
            async with bounded(what, self.timeout):
                yield
        except oracledb.Error as e:
            logger.error("System-of-record call failed (%s): %s", what, e)
            raise BackendError(f"fail to {what}: {e}") from e


def _row_to_account(row) -> Account:
    return Account(
        id=row[0],
        api_key=row[1],
        created_at=row[2],
        expired_at=row[3],
        no_of_vaults=row[4] or 0,
        is_paid=bool(row[5]),
    )


def _to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
