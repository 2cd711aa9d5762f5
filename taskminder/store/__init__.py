from __future__ import annotations

from .interface import OwnerDirectory, TaskStore
from .query import Filter, SortKey, TaskQuery

__all__ = ["TaskStore", "OwnerDirectory", "TaskQuery", "Filter", "SortKey"]
