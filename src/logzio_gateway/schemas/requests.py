from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RELATIVE_TIME_TOKENS = ("1h", "6h", "12h", "24h", "3d", "7d", "30d")

SortOrder = Literal["asc", "desc"]


class Severity(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class TimeRange(BaseModel):
    """Explicit bounds, a relative token, or both (explicit bounds win)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: Optional[datetime] = Field(default=None, alias="from")
    to: Optional[datetime] = None
    relative: Optional[str] = None  # one of RELATIVE_TIME_TOKENS, e.g. "24h"

    @field_validator("from_", "to")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive instants are UTC.
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.from_ is not None and self.to is not None and self.from_ > self.to:
            raise ValueError("time range 'from' must not be later than 'to'")
        return self


TimeRangeInput = Union[TimeRange, str]


class _QueryRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str = Field(min_length=1)
    time_range: Optional[TimeRangeInput] = Field(default=None, alias="timeRange")
    sort: SortOrder = "desc"

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Query cannot be empty")
        return value


class SearchRequest(_QueryRequest):
    log_type: Optional[str] = Field(default=None, alias="logType")
    severity: Optional[Severity] = None
    limit: int = Field(default=50, ge=1, le=1000)


class StructuredQueryRequest(_QueryRequest):
    limit: int = Field(default=100, ge=1, le=1000)


class StatisticsRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time_range: Optional[TimeRangeInput] = Field(default=None, alias="timeRange")
    group_by: tuple[str, ...] = Field(default=(), alias="groupBy")

    @field_validator("group_by")
    @classmethod
    def _clean_fields(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned: list[str] = []
        for field in value:
            name = field.strip()
            if not name:
                raise ValueError("group-by field names cannot be empty")
            if name not in cleaned:
                cleaned.append(name)
        return tuple(cleaned)
