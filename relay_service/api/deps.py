from typing import Optional

from fastapi import Header, HTTPException, Request

from ..models.accounts import Account


def get_service(request: Request, name: str):
    svc = getattr(request.app.state, name, None)
    if not svc:
        label = name.removesuffix("_service").replace("_", " ").capitalize()
        raise HTTPException(status_code=503, detail=f"{label} service not available")
    return svc


async def require_account(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
) -> Account:
    """Identity-only check: a valid, entitled account for ``X-API-Key``."""
    svc = get_service(request, "auth_service")
    account = await svc.check_identity(x_api_key)
    if account is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return account


async def require_vault_access(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    x_vault_pubkey: Optional[str] = Header(default=None),
) -> Optional[Account]:
    """Gate relay routes when ``require_api_key`` is switched on.

    The caller must present an entitled API key and one of that account's
    registered vault public keys.
    """
    if not request.app.state.settings.require_api_key:
        return None
    svc = get_service(request, "auth_service")
    account = await svc.check_authorization(x_api_key, x_vault_pubkey)
    if account is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return account


async def require_admin(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Bearer token check for account administration.

    When RELAY_ADMIN_TOKEN is not set every caller is allowed (local dev mode).
    """
    token = request.app.state.settings.relay_admin_token
    if token:
        auth = authorization or ""
        if not auth.startswith("Bearer ") or auth[7:] != token:
            raise HTTPException(status_code=401, detail="Unauthorized")
