from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Account(BaseModel):
    """Read-through copy of a system-of-record user row."""

    id: int = 0
    api_key: str = ""
    created_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    no_of_vaults: int = 0
    is_paid: bool = False

    @field_validator("created_at", "expired_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # The database hands back naive timestamps stored in UTC.
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if self.id <= 0 or not self.api_key or self.created_at is None:
            return False
        if not self.is_paid:
            return False
        now = now or datetime.now(timezone.utc)
        if self.expired_at is not None and self.expired_at <= now:
            return False
        return self.no_of_vaults > 0


class RegisterVaultRequest(BaseModel):
    public_key_ecdsa: str = Field(min_length=1)
    public_key_eddsa: str = Field(min_length=1)


class EntitlementUpdate(BaseModel):
    expired_at: datetime
    no_of_vaults: int = Field(ge=0)
    is_paid: bool
    payment_ref: str = Field(min_length=1)
    amount: float = Field(ge=0)
