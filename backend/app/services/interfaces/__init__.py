"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .event_lock import EventLockStrategy
from .row_lock import RowLockStrategy

__all__ = ['EventLockStrategy', 'RowLockStrategy']
