"""Error kinds raised by the relay core.

Routers never build status codes themselves: every ``RelayError`` carries the
status the transport should answer with, and ``main.py`` installs a single
exception handler for the whole family.
"""

import asyncio
from contextlib import asynccontextmanager


class RelayError(Exception):
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFoundError(RelayError):
    """Key, session or account is absent or expired."""

    status_code = 404


class OperationCancelled(RelayError):
    """The backend call ran past its time limit before the backend answered."""

    status_code = 408


class BackendError(RelayError):
    """The key-value backend or the system-of-record call itself failed."""

    status_code = 500


class ValidationError(RelayError):
    status_code = 400


class LimitReachedError(RelayError):
    """Business-rule denial, e.g. the account's vault cap."""

    status_code = 403


@asynccontextmanager
async def bounded(what: str, timeout: float):
    """Run the enclosed awaits under ``timeout`` seconds.

    An elapsed timeout surfaces as ``OperationCancelled``. Task cancellation
    (``asyncio.CancelledError``) is left to propagate untouched.
    """
    try:
        async with asyncio.timeout(timeout):
            yield
    except TimeoutError as e:
        raise OperationCancelled(f"{what} timed out after {timeout}s") from e
