"""Routers package for the repeating task engine API."""

from .repeating_rules import router as repeating_rules_router
from .tasks import router as tasks_router

__all__ = ["repeating_rules_router", "tasks_router"]
