from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse

from .deps import get_service, require_vault_access
from ..errors import ValidationError

router = APIRouter(prefix="/complete", dependencies=[Depends(require_vault_access)])


def _get_value_service(request: Request):
    return get_service(request, "value_service")


@router.post("/{session_id}/keysign")
async def set_keysign_complete(request: Request, session_id: str,
                               message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_value_service(request)
    try:
        value = (await request.body()).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError("completion value must be UTF-8 text") from e
    await svc.set_completion_value(session_id.strip(), message_id, value)
    return {"stored": True}


@router.get("/{session_id}/keysign", response_class=PlainTextResponse)
async def get_keysign_complete(request: Request, session_id: str,
                               message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_value_service(request)
    return await svc.get_completion_value(session_id.strip(), message_id)
