import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import BackendError, ValidationError
from ..models.messages import Message

logger = logging.getLogger(__name__)


def mailbox_key(session_id: str, recipient: str, round_id: Optional[str] = None) -> str:
    """``<session>-<recipient>``, suffixed with ``-<round>`` when a round is given."""
    if not session_id or not recipient:
        raise ValidationError("session id and recipient are required")
    if round_id:
        return f"{session_id}-{recipient}-{round_id}"
    return f"{session_id}-{recipient}"


class MailboxService:
    """Ordered, hash-deduplicated message queues, one per mailbox key.

    Dedup is a read followed by an append with nothing in between held; two
    writers racing on one key may both store the same hash. Consumers dedupe
    by hash again on read.
    """

    def __init__(self, backend, ttl: int = 300):
        self.backend = backend
        self.ttl = ttl

    async def put_message(self, key: str, message: Message) -> bool:
        """Store ``message`` unless one with the same hash is already queued.

        Returns True when the message was appended.
        """
        for _, existing in await self._load(key):
            if existing.hash == message.hash:
                logger.debug("Message %s already in %s", message.hash, key)
                return False
        await self.backend.append(key, [message.to_json()], self.ttl)
        return True

    async def post_message(self, session_id: str, message: Message,
                           round_id: Optional[str] = None) -> int:
        """Fan a message out to every mailbox in ``message.to``.

        Returns how many mailboxes did not already hold it.
        """
        if not session_id or not session_id.strip():
            raise ValidationError("session id is required")
        if not message.hash:
            raise ValidationError("message hash is required")
        if not message.to:
            raise ValidationError("message has no recipients")
        stored = 0
        for recipient in message.to:
            key = mailbox_key(session_id, recipient, round_id)
            if await self.put_message(key, message):
                stored += 1
        return stored

    async def get_messages(self, key: str) -> list[Message]:
        return [message for _, message in await self._load(key)]

    async def delete_message(self, key: str, msg_hash: str) -> bool:
        """Remove the first message with ``msg_hash``; no match is a no-op."""
        for raw, message in await self._load(key):
            if message.hash == msg_hash:
                await self.backend.remove_one(key, raw, self.ttl)
                return True
        return False

    async def delete_all_messages(self, key: str) -> None:
        await self.backend.delete(key)

    async def _load(self, key: str) -> list[tuple[str, Message]]:
        entries = []
        for raw in await self.backend.range(key):
            try:
                entries.append((raw, Message.model_validate_json(raw)))
            except PydanticValidationError as e:
                raise BackendError(f"fail to decode message in {key}: {e}") from e
        return entries
