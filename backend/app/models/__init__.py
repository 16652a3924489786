"""SQLAlchemy ORM models for PartsCatalog."""

from app.models.base import Base
from app.models.admin_session import AdminSession

__all__ = [
    "Base",
    "AdminSession",
]
