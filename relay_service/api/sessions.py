from fastapi import APIRouter, Body, Depends, Request

from .deps import get_service, require_vault_access
from ..services.session_service import PHASES

router = APIRouter(dependencies=[Depends(require_vault_access)])


def _get_session_service(request: Request):
    return get_service(request, "session_service")


@router.post("/start/{session_id}", status_code=201)
async def start_phase(request: Request, session_id: str, participants: list[str] = Body(...)):
    svc = _get_session_service(request)
    added = await svc.set_phase("start", session_id.strip(), participants)
    return {"session_id": session_id, "added": added}


@router.get("/start/{session_id}")
async def get_start_phase(request: Request, session_id: str):
    svc = _get_session_service(request)
    return await svc.get_phase("start", session_id.strip())


@router.delete("/start/{session_id}")
async def delete_start_phase(request: Request, session_id: str):
    svc = _get_session_service(request)
    await svc.delete_phase("start", session_id.strip())
    return {"deleted": True}


@router.post("/complete/{session_id}", status_code=201)
async def complete_phase(request: Request, session_id: str, participants: list[str] = Body(...)):
    svc = _get_session_service(request)
    added = await svc.set_phase("complete", session_id.strip(), participants)
    return {"session_id": session_id, "added": added}


@router.get("/complete/{session_id}")
async def get_complete_phase(request: Request, session_id: str):
    svc = _get_session_service(request)
    return await svc.get_phase("complete", session_id.strip())


@router.delete("/complete/{session_id}")
async def delete_complete_phase(request: Request, session_id: str):
    svc = _get_session_service(request)
    await svc.delete_phase("complete", session_id.strip())
    return {"deleted": True}


@router.post("/{session_id}", status_code=201)
async def start_session(request: Request, session_id: str, participants: list[str] = Body(...)):
    svc = _get_session_service(request)
    added = await svc.set_session(session_id.strip(), participants)
    return {"session_id": session_id, "added": added}


@router.get("/{session_id}")
async def get_session(request: Request, session_id: str):
    svc = _get_session_service(request)
    return await svc.get_session(session_id.strip())


@router.delete("/{session_id}")
async def delete_session(request: Request, session_id: str):
    """End a session along with its start/complete phase sessions."""
    svc = _get_session_service(request)
    session_id = session_id.strip()
    await svc.delete_session(session_id)
    for phase in PHASES:
        await svc.delete_phase(phase, session_id)
    return {"deleted": True}
