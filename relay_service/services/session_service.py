import logging

from ..errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PHASES = ("start", "complete")


def phase_key(phase: str, session_id: str) -> str:
    """Key of the independent session tracking one sub-phase."""
    if phase not in PHASES:
        raise ValidationError(f"unknown session phase {phase!r}")
    return f"{phase}-{session_id}"


class SessionService:
    """Participant registry for coordination sessions.

    A session is a Redis list of participant ids under the session id itself.
    Writes only ever add ids, so repeated or overlapping registrations are
    idempotent and the list never shrinks before it expires.

    ``set_session`` reads the list and then appends what is missing; two
    concurrent calls for the same session can both miss a participant the
    other is adding and push it twice. Readers test membership rather than
    count, so the window is left open.
    """

    def __init__(self, backend, ttl: int = 300):
        self.backend = backend
        self.ttl = ttl

    async def set_session(self, session_id: str, participants: list[str]) -> list[str]:
        """Add unseen participants and refresh the session's expiry.

        Returns the participants that were newly added.
        """
        _require_id(session_id)
        for p in participants:
            if not isinstance(p, str) or not p.strip():
                raise ValidationError("participant ids must be non-empty strings")
        added = await self.backend.append_unique(session_id, participants, self.ttl)
        if added:
            logger.debug("Session %s: added %d participant(s)", session_id, len(added))
        return added

    async def get_session(self, session_id: str) -> list[str]:
        _require_id(session_id)
        participants = await self.backend.range(session_id)
        if not participants:
            raise NotFoundError(f"session {session_id} not found")
        return participants

    async def delete_session(self, session_id: str) -> None:
        _require_id(session_id)
        await self.backend.delete(session_id)

    async def set_phase(self, phase: str, session_id: str, participants: list[str]) -> list[str]:
        _require_id(session_id)
        return await self.set_session(phase_key(phase, session_id), participants)

    async def get_phase(self, phase: str, session_id: str) -> list[str]:
        _require_id(session_id)
        return await self.get_session(phase_key(phase, session_id))

    async def delete_phase(self, phase: str, session_id: str) -> None:
        _require_id(session_id)
        await self.delete_session(phase_key(phase, session_id))


def _require_id(session_id: str) -> None:
    if not session_id or not session_id.strip():
        raise ValidationError("session id is required")
