from .accounts import Account, EntitlementUpdate, RegisterVaultRequest
from .messages import Message

__all__ = [
    "Account",
    "EntitlementUpdate",
    "RegisterVaultRequest",
    "Message",
]
