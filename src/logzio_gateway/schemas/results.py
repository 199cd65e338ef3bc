from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TotalHits(BaseModel):
    value: Optional[int] = None
    relation: Optional[str] = None


class Hit(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    source: Optional[dict[str, Any]] = Field(default=None, alias="_source")
    score: Optional[float] = Field(default=None, alias="_score")


class Hits(BaseModel):
    model_config = ConfigDict(extra="allow")

    total: Union[int, TotalHits, None] = None
    hits: Optional[list[Hit]] = None


class RawResponse(BaseModel):
    """Backend search response. Every field is optional."""

    model_config = ConfigDict(extra="allow")

    hits: Optional[Hits] = None
    aggregations: Optional[dict[str, Any]] = None
    took: Optional[int] = None
    timed_out: Optional[bool] = None


class Bucket(BaseModel):
    key: Union[str, int, float]
    count: int


class NormalizedResult(BaseModel):
    total: int = 0
    items: list[dict[str, Any]] = Field(default_factory=list)
    aggregations: dict[str, list[Bucket]] = Field(default_factory=dict)
    metrics: dict[str, Optional[float]] = Field(default_factory=dict)
    took_ms: int = 0
    timed_out: bool = False
