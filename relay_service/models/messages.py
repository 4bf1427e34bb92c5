from pydantic import BaseModel, Field


class Message(BaseModel):
    """One relayed protocol message.

    ``hash`` is the caller-computed content hash and identifies the message
    within a mailbox; ``body`` is opaque to the relay.
    """

    session_id: str = ""
    from_: str = Field(default="", alias="from")
    to: list[str] = Field(default_factory=list)
    body: str = ""
    hash: str
    sequence_no: int = Field(default=0, ge=0)

    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        # hash and sequence_no are always written; the rest only when set.
        empty = {name for name in ("session_id", "from_", "to", "body") if not getattr(self, name)}
        return self.model_dump_json(by_alias=True, exclude=empty)
