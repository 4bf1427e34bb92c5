from fastapi import APIRouter, Depends, HTTPException, Request

from .deps import get_service, require_account, require_admin
from ..models.accounts import Account, EntitlementUpdate, RegisterVaultRequest

router = APIRouter(prefix="/api")


def _get_auth_service(request: Request):
    return get_service(request, "auth_service")


@router.get("/account")
async def get_account(account: Account = Depends(require_account)):
    return account.model_dump(mode="json")


@router.get("/account/vaults/{public_key}")
async def check_vault(request: Request, public_key: str, account: Account = Depends(require_account)):
    svc = _get_auth_service(request)
    authorized = await svc.check_authorization(account.api_key, public_key)
    if authorized is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"account_id": authorized.id, "authorized": True}


@router.post("/account/vaults")
async def register_vault(request: Request, body: RegisterVaultRequest,
                         account: Account = Depends(require_account)):
    svc = _get_auth_service(request)
    registered = await svc.register_vault_key(account, body.public_key_ecdsa, body.public_key_eddsa)
    return {"registered": registered, "max_vaults": account.no_of_vaults}


@router.post("/accounts", status_code=201, dependencies=[Depends(require_admin)])
async def issue_account(request: Request):
    svc = _get_auth_service(request)
    api_key = await svc.issue_account()
    return {"api_key": api_key}


@router.put("/accounts/{api_key}/entitlement", dependencies=[Depends(require_admin)])
async def update_entitlement(request: Request, api_key: str, body: EntitlementUpdate):
    svc = _get_auth_service(request)
    await svc.update_entitlement(
        api_key,
        expired_at=body.expired_at,
        no_of_vaults=body.no_of_vaults,
        is_paid=body.is_paid,
        payment_ref=body.payment_ref,
        amount=body.amount,
    )
    return {"api_key": api_key, "updated": True}
