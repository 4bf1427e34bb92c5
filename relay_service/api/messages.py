import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from .deps import get_service, require_vault_access
from ..models.messages import Message
from ..services.mailbox_service import mailbox_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/message", dependencies=[Depends(require_vault_access)])



def _get_mailbox_service(request: Request):
    return get_service(request, "mailbox_service")


@router.post("/{session_id}", status_code=202)
async def post_message(request: Request, session_id: str, body: Message,
                       message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_mailbox_service(request)
    logger.debug("Message %s for session %s round %s", body.hash, session_id, message_id)
    stored = await svc.post_message(session_id.strip(), body, round_id=message_id)
    return {"stored": stored, "recipients": len(body.to)}


@router.get("/{session_id}/{participant_id}")
async def get_messages(request: Request, session_id: str, participant_id: str,
                       message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_mailbox_service(request)
    key = mailbox_key(session_id.strip(), participant_id.strip(), message_id)
    messages = await svc.get_messages(key)
    return [m.model_dump(by_alias=True) for m in messages]


@router.delete("/{session_id}/{participant_id}/{msg_hash}")
async def delete_message(request: Request, session_id: str, participant_id: str, msg_hash: str,
                         message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_mailbox_service(request)
    key = mailbox_key(session_id.strip(), participant_id.strip(), message_id)
    deleted = await svc.delete_message(key, msg_hash.strip())
    return {"deleted": deleted}


@router.delete("/{session_id}/{participant_id}")
async def delete_all_messages(request: Request, session_id: str, participant_id: str,
                              message_id: Optional[str] = Header(default=None, convert_underscores=False)):
    svc = _get_mailbox_service(request)
    key = mailbox_key(session_id.strip(), participant_id.strip(), message_id)
    await svc.delete_all_messages(key)
    return {"deleted": True}
