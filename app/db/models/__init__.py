"""
SQLAlchemy database models.

Models are organized by domain:
- base: Base declarative class
- user: Profile (trust, usage mirrors, personality result)
- billing: Subscription
- relationship: ProgressionEvent
- chat: Memory

Import any model from this module:
    from app.db.models import Profile, Subscription, ProgressionEvent, Memory
"""

# Base class (must be imported first)
from .base import Base

from .user import Profile
from .billing import Subscription
from .relationship import ProgressionEvent
from .chat import Memory

__all__ = [
    "Base",
    "Profile",
    "Subscription",
    "ProgressionEvent",
    "Memory",
]
