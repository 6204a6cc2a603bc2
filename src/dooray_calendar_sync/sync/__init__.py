"""
Three-calendar synchronization engine.
"""

from dooray_calendar_sync.sync.engine import SyncEngine
from dooray_calendar_sync.sync.utils import get_visibility

__all__ = ["SyncEngine", "get_visibility"]
