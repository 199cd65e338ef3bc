import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.schemas.requests import TimeRange

logger = logging.getLogger(__name__)

RELATIVE_DURATIONS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "12h": timedelta(hours=12),
    "24h": timedelta(hours=24),
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


@dataclass(frozen=True)
class ResolvedRange:
    from_: Optional[datetime] = None
    to: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return self.from_ is None and self.to is None

    @property
    def span(self) -> Optional[timedelta]:
        if self.from_ is None or self.to is None:
            return None
        return self.to - self.from_

    def range_clause(self) -> dict[str, str]:
        """``gte``/``lte`` bounds for a ``range`` query; only present bounds appear."""
        bounds: dict[str, str] = {}
        if self.from_ is not None:
            bounds["gte"] = format_instant(self.from_)
        if self.to is not None:
            bounds["lte"] = format_instant(self.to)
        return bounds


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision, e.g. ``2025-01-01T10:00:00.000Z``."""
    return _utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str) -> datetime:
    return _utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def resolve_relative(token: str, now: Optional[datetime] = None) -> ResolvedRange:
    """Resolve a relative token such as ``"24h"`` to ``(now - 24h, now)``.

    Unrecognised tokens resolve to an empty (unbounded) range.
    """
    duration = RELATIVE_DURATIONS.get(token.strip().lower())
    if duration is None:
        logger.warning(
            "Unrecognised relative time range %r ignored; supported: %s",
            token, ", ".join(RELATIVE_DURATIONS),
        )
        return ResolvedRange()
    anchor = _utc(now) if now is not None else datetime.now(timezone.utc)
    return ResolvedRange(from_=anchor - duration, to=anchor)


def resolve_time_range(
    time_range: Union[TimeRange, str, None],
    now: Optional[datetime] = None,
) -> ResolvedRange:
    """Turn any accepted time range input into explicit bounds.

    For a ``TimeRange`` the relative token is resolved first and explicit
    ``from``/``to`` values then replace the bound they name.
    """
    if time_range is None:
        return ResolvedRange()
    if isinstance(time_range, str):
        if not time_range.strip():
            return ResolvedRange()
        return resolve_relative(time_range, now)

    base = resolve_relative(time_range.relative, now) if time_range.relative else ResolvedRange()
    start = _utc(time_range.from_) if time_range.from_ is not None else base.from_
    end = _utc(time_range.to) if time_range.to is not None else base.to
    if start is not None and end is not None and start > end:
        raise GatewayError(
            ErrorKind.VALIDATION,
            "Time range start is later than its end",
            context={"from": format_instant(start), "to": format_instant(end)},
        )
    return ResolvedRange(from_=start, to=end)
