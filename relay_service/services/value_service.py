from ..errors import ValidationError


def completion_key(session_id: str, round_id: str) -> str:
    if not session_id or not round_id:
        raise ValidationError("session id and round id are required")
    return f"keysign-{session_id}-{round_id}-complete"


class ValueService:
    """Single-slot values with a longer expiry; the last write wins."""

    def __init__(self, backend, ttl: int = 3600):
        self.backend = backend
        self.ttl = ttl

    async def set_value(self, key: str, value: str) -> None:
        await self.backend.set_scalar(key, value, self.ttl)

    async def get_value(self, key: str) -> str:
        return await self.backend.get_scalar(key)

    async def set_completion_value(self, session_id: str, round_id: str, value: str) -> None:
        await self.set_value(completion_key(session_id, round_id), value)

    async def get_completion_value(self, session_id: str, round_id: str) -> str:
        return await self.get_value(completion_key(session_id, round_id))
