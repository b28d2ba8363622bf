from fastapi import APIRouter, FastAPI

from .admin import router as admin_router
from .fitness import router as fitness_router
from .matching import router as matching_router
from .messages import router as messages_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(matching_router, tags=["matching"])
    app.include_router(messages_router, tags=["messages"])
    app.include_router(fitness_router, tags=["fitness"])
    app.include_router(admin_router, tags=["admin"])


__all__ = ["include_modular_routers", "APIRouter"]
