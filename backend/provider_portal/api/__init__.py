"""API module - Routes and dependencies"""
from .deps import get_db, get_admin_actor_dep

__all__ = ["get_db", "get_admin_actor_dep"]
