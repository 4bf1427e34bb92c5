from .account_store import AccountStore
from .auth_service import AuthService
from .mailbox_service import MailboxService
from .session_service import SessionService
from .value_service import ValueService

__all__ = [
    "AccountStore",
    "AuthService",
    "MailboxService",
    "SessionService",
    "ValueService",
]
