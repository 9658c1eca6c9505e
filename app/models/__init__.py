"""
Wellspring — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.personalization import UserPersonalization
from app.models.session import SessionSummaryRecord

__all__ = [
    "UserPersonalization",
    "SessionSummaryRecord",
]
