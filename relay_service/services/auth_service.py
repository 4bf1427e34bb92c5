import json
import logging
import secrets
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from ..errors import BackendError, NotFoundError, OperationCancelled, ValidationError
from ..models.accounts import Account

logger = logging.getLogger(__name__)

API_KEY_BYTES = 32


def account_cache_key(api_key: str) -> str:
    return f"account-{api_key}"


def vault_keys_cache_key(account_id: int) -> str:
    return f"vault-keys-{account_id}"


class AuthService:
    """Cache-aside account and vault-key authorization.

    Reads go to Redis first and fall back to the system-of-record
    (``AccountStore``). Cache entries are read-through copies with their own
    expiry and are never written back to the system-of-record. Cache reads
    and writes are best-effort: a ``BackendError`` or a timed-out call is
    logged and the request carries on as if the cache were cold. Task
    cancellation still propagates.

    Lookups return the resolved ``Account`` (or None when access is denied)
    so callers can hand it on to later steps.
    """

    def __init__(self, cache, store, account_ttl: int = 300, keys_ttl: int = 300):
        self.cache = cache
        self.store = store
        self.account_ttl = account_ttl
        self.keys_ttl = keys_ttl

    async def check_identity(self, api_key: str | None) -> Account | None:
        """Resolve a valid account for ``api_key`` without checking vault keys."""
        if not api_key:
            return None

        account = await self._cached_account(api_key)
        if account is None:
            account = await self.store.lookup_account(api_key)
            if account is None:
                logger.debug("Unknown API key %s...", api_key[:6])
                return None
            if account.is_valid():
                await self._cache_set(
                    account_cache_key(api_key), account.model_dump_json(), self.account_ttl
                )

        if not account.is_valid():
            logger.debug("Account %s is not entitled", account.id)
            return None
        return account

    async def check_authorization(self, api_key: str | None, proof_key: str | None) -> Account | None:
        """Resolve the account and require ``proof_key`` to be one of its vault keys."""
        account = await self.check_identity(api_key)
        if account is None or not proof_key:
            return None

        if proof_key in await self._cached_keys(account.id):
            return account

        keys = await self.store.list_authorized_keys(account.id)
        if keys:
            await self._cache_set(
                vault_keys_cache_key(account.id), json.dumps(keys), self.keys_ttl
            )
        return account if proof_key in keys else None

    async def register_vault_key(self, account: Account, ecdsa_key: str, eddsa_key: str) -> bool:
        """Register a vault for an already-authorized account.

        The cap is the account's ``no_of_vaults`` as seen by the caller, which
        may come from the cache and lag the system-of-record.
        """
        if not ecdsa_key or not eddsa_key:
            raise ValidationError("both ECDSA and EdDSA public keys are required")
        return await self.store.register_key(
            account.id, ecdsa_key, eddsa_key, max_allowed=account.no_of_vaults
        )

    async def issue_account(self) -> str:
        api_key = secrets.token_urlsafe(API_KEY_BYTES)
        await self.store.create_account(api_key)
        logger.info("Issued account key %s...", api_key[:6])
        return api_key

    async def update_entitlement(self, api_key: str, expired_at: datetime, no_of_vaults: int,
                                 is_paid: bool, payment_ref: str, amount: float) -> None:
        if not api_key:
            raise ValidationError("api key is required")
        await self.store.update_entitlement(
            api_key, expired_at, no_of_vaults, is_paid, payment_ref, amount
        )
        # Drop the cached copy so the next check sees the new entitlement.
        try:
            await self.cache.delete(account_cache_key(api_key))
        except (BackendError, OperationCancelled) as e:
            logger.warning("Failed to evict cached account: %s", e)

    async def _cached_account(self, api_key: str) -> Account | None:
        try:
            raw = await self.cache.get_scalar(account_cache_key(api_key))
        except NotFoundError:
            return None
        except (BackendError, OperationCancelled) as e:
            logger.warning("Account cache lookup failed, using system-of-record: %s", e)
            return None
        try:
            return Account.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("Discarding unreadable cached account: %s", e)
            return None

    async def _cached_keys(self, account_id: int) -> list[str]:
        try:
            raw = await self.cache.get_scalar(vault_keys_cache_key(account_id))
        except NotFoundError:
            return []
        except (BackendError, OperationCancelled) as e:
            logger.warning("Vault key cache lookup failed, using system-of-record: %s", e)
            return []
        try:
            keys = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding unreadable cached vault keys: %s", e)
            return []
        return keys if isinstance(keys, list) else []

    async def _cache_set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.cache.set_scalar(key, value, ttl)
        except (BackendError, OperationCancelled) as e:
            logger.warning("Failed to populate cache %s: %s", key, e)
