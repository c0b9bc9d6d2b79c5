"""API route handlers."""

from .events import router as events_router
from .subscriptions import router as subscriptions_router
from .auth import router as auth_router
from .admin import router as admin_router
