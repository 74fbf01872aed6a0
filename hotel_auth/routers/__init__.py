# Routers package
from . import auth_router
from . import profile_router

__all__ = [
    "auth_router",
    "profile_router",
]
