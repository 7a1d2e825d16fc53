"""
SQLAlchemy models.

Exposes the declarative ``Base``, ``now_utc`` and the ORM classes.
"""

from .base import Base, now_utc  # re-export
from .submissions import Submission

__all__ = [
    "Base",
    "now_utc",
    "Submission",
]
