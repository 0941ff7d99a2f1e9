"""Domain records for shows, classes, startlist entries and scores.

Store backends hand back plain dict rows; these pydantic models parse them
into typed records (dates, times, enums) for the lifecycle clock, the scoring
engine and the ranking resolver, and dump them back with ``to_row()``.
"""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rules import ClassRule
from .types import EntityStatus, ScoreStatus, ShowType


def coerce_date(value: Any) -> Any:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        # Timestamps from the store carry a time part; day granularity only.
        return value[:10]
    return value


def coerce_time(value: Any) -> Any:
    if value in (None, ""):
        return None
    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError("time must be HH:MM or HH:MM:SS")
        hour, minute = int(parts[0]), int(parts[1])
        second = int(float(parts[2])) if len(parts) > 2 and parts[2] else 0
        return time(hour, minute, second)
    return value


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Show(_Record):
    id: str
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    show_type: ShowType = ShowType.NATIONAL
    status: EntityStatus = EntityStatus.UPCOMING

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return coerce_date(v)


class CompetitionClass(_Record):
    id: str
    show_id: Optional[str] = None
    class_name: str = ""
    # Optional so partial projections (reconciler) still parse.
    class_rule: Optional[ClassRule] = None
    class_type: Optional[str] = None
    height: Optional[Union[str, float]] = None
    price: Optional[float] = None
    currency: str = "AED"
    class_date: Optional[date] = None
    start_time: Optional[time] = None
    time_allowed: Optional[float] = Field(None, gt=0)
    time_allowed_round2: Optional[float] = Field(None, gt=0)
    optimum_time: Optional[float] = Field(None, gt=0)
    max_points: Optional[int] = Field(65, ge=0)
    number_of_rounds: int = Field(1, ge=1)
    status: EntityStatus = EntityStatus.UPCOMING
    linked_stream_id: Optional[str] = None

    @field_validator("class_date", mode="before")
    @classmethod
    def parse_class_date(cls, v: Any) -> Any:
        return coerce_date(v)

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start_time(cls, v: Any) -> Any:
        return coerce_time(v)


class StartlistEntry(_Record):
    id: str
    class_id: str
    rider_name: str = ""
    rider_id: Optional[str] = None
    fei_id: Optional[str] = None
    horse_name: str = ""
    team_name: Optional[str] = None
    club_name: Optional[str] = None
    is_handicap: bool = False
    country_code: Optional[str] = None
    start_order: int = 0


class Score(_Record):
    id: str
    startlist_id: str
    class_id: str
    round_number: int = Field(1, ge=1)
    time_taken: Optional[float] = None
    time_faults: float = 0.0
    jumping_faults: float = 0.0
    total_faults: float = 0.0
    points: float = 0.0
    status: ScoreStatus = ScoreStatus.PENDING
    is_jumpoff: bool = False
    qualified_for_jumpoff: bool = False
    rank: Optional[int] = None
    final_time: Optional[float] = None
    notes: Optional[str] = None
    scored_by: Optional[str] = None
    scored_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ScoreStatus.COMPLETED
