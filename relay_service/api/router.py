from fastapi import APIRouter

from .accounts import router as accounts_router
from .completion import router as completion_router
from .health import router as health_router
from .init import router as init_router
from .messages import router as messages_router
from .sessions import router as sessions_router

api_router = APIRouter()

# Fixed paths first: the session routes catch any single-segment path.
api_router.include_router(health_router, tags=["health"])
api_router.include_router(init_router, tags=["init"])
api_router.include_router(accounts_router, tags=["accounts"])
api_router.include_router(messages_router, tags=["messages"])
api_router.include_router(completion_router, tags=["completion"])
api_router.include_router(sessions_router, tags=["sessions"])
