"""
Input validation schemas using Pydantic v2
Validates show, class, startlist and score payloads before they reach the core
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import Any, Optional, Self, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import coerce_date, coerce_time
from .rules import ClassRule, get_rule
from .types import EntityStatus, ShowType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _rule_or_value_error(value: Any) -> Any:
    if value is None:
        return value
    try:
        return get_rule(value).rule
    except ValidationError as exc:
        raise ValueError(exc.message) from None


# ==================== SHOWS ====================


class ShowInput(BaseModel):
    """Payload for creating a show"""

    name: str = Field(..., min_length=1, max_length=255)
    start_date: date
    end_date: date
    show_type: ShowType = ShowType.NATIONAL
    status: EntityStatus = EntityStatus.UPCOMING

    model_config = ConfigDict(extra="ignore")

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        return InputSanitizer.sanitize_string(v) if isinstance(v, str) else v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Any:
        return coerce_date(v)

    @model_validator(mode="after")
    def validate_window(self) -> Self:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ShowUpdate(BaseModel):
    """Partial show edit; only fields present in the payload are applied"""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    show_type: Optional[ShowType] = None
    status: Optional[EntityStatus] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Any:
        return coerce_date(v)


# ==================== CLASSES ====================


class ClassInput(BaseModel):
    """Payload for creating a class within a show"""

    show_id: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1, max_length=255)
    class_rule: ClassRule
    class_type: Optional[str] = Field(None, max_length=100)
    height: Optional[Union[str, float]] = None
    price: Optional[float] = Field(None, ge=0)
    currency: str = Field("AED", min_length=1, max_length=8)
    class_date: Optional[date] = None
    start_time: Optional[time] = None
    time_allowed: Optional[float] = Field(None, gt=0, le=3600, description="Seconds")
    time_allowed_round2: Optional[float] = Field(None, gt=0, le=3600, description="Seconds")
    optimum_time: Optional[float] = Field(None, gt=0, le=3600, description="Seconds")
    max_points: int = Field(65, ge=0, le=1000)
    number_of_rounds: Optional[int] = Field(None, ge=1, le=10)
    status: EntityStatus = EntityStatus.UPCOMING
    linked_stream_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("class_rule", mode="before")
    @classmethod
    def validate_class_rule(cls, v: Any) -> Any:
        """class_rule must be one of the catalogued rules"""
        return _rule_or_value_error(v)

    @field_validator("class_name", mode="before")
    @classmethod
    def validate_class_name(cls, v: Any) -> Any:
        return InputSanitizer.sanitize_string(v) if isinstance(v, str) else v

    @field_validator("class_date", mode="before")
    @classmethod
    def validate_class_date(cls, v: Any) -> Any:
        return coerce_date(v)

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v: Any) -> Any:
        return coerce_time(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def default_rounds(self) -> Self:
        if self.number_of_rounds is None:
            self.number_of_rounds = get_rule(self.class_rule).rounds
        return self


class ClassUpdate(BaseModel):
    """Partial class edit"""

    class_name: Optional[str] = Field(None, min_length=1, max_length=255)
    class_rule: Optional[ClassRule] = None
    class_type: Optional[str] = Field(None, max_length=100)
    height: Optional[Union[str, float]] = None
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=1, max_length=8)
    class_date: Optional[date] = None
    start_time: Optional[time] = None
    time_allowed: Optional[float] = Field(None, gt=0, le=3600)
    time_allowed_round2: Optional[float] = Field(None, gt=0, le=3600)
    optimum_time: Optional[float] = Field(None, gt=0, le=3600)
    max_points: Optional[int] = Field(None, ge=0, le=1000)
    number_of_rounds: Optional[int] = Field(None, ge=1, le=10)
    status: Optional[EntityStatus] = None
    linked_stream_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("class_rule", mode="before")
    @classmethod
    def validate_class_rule(cls, v: Any) -> Any:
        return _rule_or_value_error(v)

    @field_validator("class_date", mode="before")
    @classmethod
    def validate_class_date(cls, v: Any) -> Any:
        return coerce_date(v)

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v: Any) -> Any:
        return coerce_time(v)


# ==================== STARTLIST ====================


class StartlistEntryInput(BaseModel):
    """One rider/horse pairing for a class startlist"""

    class_id: str = Field(..., min_length=1)
    rider_name: str = Field(..., min_length=1, max_length=255)
    horse_name: str = Field(..., min_length=1, max_length=255)
    start_order: int = Field(..., ge=0, le=10000)
    rider_id: Optional[str] = None
    fei_id: Optional[str] = Field(None, max_length=32)
    team_name: Optional[str] = Field(None, max_length=255)
    club_name: Optional[str] = Field(None, max_length=255)
    is_handicap: bool = False
    country_code: Optional[str] = Field(None, max_length=3)

    model_config = ConfigDict(extra="ignore")

    @field_validator("rider_name", "horse_name", mode="before")
    @classmethod
    def validate_names(cls, v: Any) -> Any:
        """Strip control and markup characters but keep diacritics"""
        if not isinstance(v, str):
            return v
        return InputSanitizer.sanitize_person_name(v)

    @field_validator("team_name", "club_name", mode="before")
    @classmethod
    def validate_optional_names(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        cleaned = InputSanitizer.sanitize_person_name(v)
        return cleaned or None

    @field_validator("country_code", mode="before")
    @classmethod
    def validate_country_code(cls, v: Any) -> Any:
        if v is None:
            return v
        if not isinstance(v, str):
            raise ValueError("country_code must be a string")
        v = v.strip().upper()
        if not v:
            return None
        if not re.fullmatch(r"[A-Z]{2,3}", v):
            raise ValueError("country_code must be a 2 or 3 letter code")
        return v


# ==================== SCORES ====================


class ScoreSubmission(BaseModel):
    """Score submitted by a judge for one startlist entry and round"""

    startlist_id: str = Field(..., min_length=1)
    class_id: str = Field(..., min_length=1)
    round_number: int = Field(1, ge=1, le=10)
    is_jumpoff: bool = False

    # Raw inputs; which ones are needed depends on the class rule
    time_taken: Optional[float] = Field(None, ge=0, le=3600, description="Seconds")
    jumping_faults: Optional[float] = Field(None, ge=0, le=1000)
    points: Optional[float] = Field(None, ge=0, le=1000)

    notes: Optional[str] = Field(None, max_length=1000)
    scored_by: Optional[str] = Field(None, max_length=255)
    submitted_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("time_taken", "jumping_faults", "points", mode="before")
    @classmethod
    def validate_numbers(cls, v: Any) -> Any:
        # Judges' forms send "" for untouched inputs.
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("notes", "scored_by", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        return InputSanitizer.sanitize_string(v, 1000) or None


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_person_name(name: str) -> str:
        """Sanitize rider/horse/team names for display - preserve diacritics"""
        name = InputSanitizer.sanitize_string(name, 255)

        # Horse names legitimately carry apostrophes, dots and dashes
        dangerous_chars = r'[<>{}[\]\\|;`"\x00-\x1f\x7f]'
        name = re.sub(dangerous_chars, "", name)

        return name.strip()

    @staticmethod
    def validate(model: type[ModelT], payload: Any) -> ModelT:
        """
        Validate a payload against ``model``

        Raises:
            ValidationError: with every field problem joined into one message
        """
        if isinstance(payload, model):
            return payload
        if not isinstance(payload, dict):
            raise ValidationError(f"{model.__name__} payload must be an object")
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            problems = []
            for err in e.errors():
                loc = ".".join(str(part) for part in err.get("loc", ()))
                msg = err.get("msg", "invalid value")
                problems.append(f"{loc}: {msg}" if loc else msg)
            message = "; ".join(problems) or "invalid payload"
            logger.warning(f"{model.__name__} validation failed: {message}")
            raise ValidationError(message) from None


__all__ = [
    "ShowInput",
    "ShowUpdate",
    "ClassInput",
    "ClassUpdate",
    "StartlistEntryInput",
    "ScoreSubmission",
    "InputSanitizer",
]
