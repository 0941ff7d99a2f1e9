"""Status enums and store table names."""
from __future__ import annotations

from enum import Enum


class EntityStatus(str, Enum):
    """Lifecycle status shared by shows and classes."""

    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScoreStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class ShowType(str, Enum):
    NATIONAL = "national"
    INTERNATIONAL = "international"


# Store table names
SHOWS = "shows"
CLASSES = "classes"
STARTLIST = "startlist"
SCORES = "scores"
TABLES = (SHOWS, CLASSES, STARTLIST, SCORES)
