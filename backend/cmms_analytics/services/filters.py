"""
Filter normalization shared by the analytics endpoints and the metrics service.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple, Union

# Ids live in signed 64-bit integer columns.
ID_MIN = -(2 ** 63)
ID_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class AnalyticsFilters:
    """Optional date range plus asset/site scope. Empty id tuples mean "no restriction"."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    asset_ids: Tuple[int, ...] = field(default_factory=tuple)
    site_ids: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def has_range(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    def contains(self, moment: Optional[datetime]) -> bool:
        """True when ``moment`` falls inside the (inclusive) range; no range accepts everything."""
        if not self.has_range:
            return True
        if moment is None:
            return False
        if self.start_date is not None and moment < self.start_date:
            return False
        if self.end_date is not None and moment > self.end_date:
            return False
        return True

    def range_payload(self) -> dict:
        payload = {}
        if self.start_date is not None:
            payload["start"] = isoformat_utc(self.start_date)
        if self.end_date is not None:
            payload["end"] = isoformat_utc(self.end_date)
        return payload


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """Millisecond ISO-8601 with a trailing Z, e.g. 2024-03-01T08:00:00.000Z."""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_date(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO date or date-time. Malformed input yields None rather than an error."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_list(values: Union[str, Iterable[str], None]) -> List[str]:
    """Flatten repeated and comma-separated query values into a list of non-empty strings."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    items: List[str] = []
    for value in values:
        if value is None:
            continue
        for part in str(value).split(","):
            part = part.strip()
            if part:
                items.append(part)
    return items


def is_storable_id(value: int) -> bool:
    return ID_MIN <= value <= ID_MAX


def parse_id(value: Any) -> Optional[int]:
    """ASCII integer that fits an id column, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip()
        if not text.isascii():
            return None
        try:
            number = int(text)
        except ValueError:
            return None
    return number if is_storable_id(number) else None


def parse_id_list(values: Union[str, Iterable[str], None]) -> Tuple[int, ...]:
    """Like parse_list but keeps only integer ids; anything else is ignored."""
    ids: List[int] = []
    for item in parse_list(values):
        number = parse_id(item)
        if number is not None:
            ids.append(number)
    return tuple(dict.fromkeys(ids))


def build_filters(
    start_date: Union[str, datetime, None] = None,
    end_date: Union[str, datetime, None] = None,
    asset_ids: Union[str, Iterable[str], None] = None,
    site_ids: Union[str, Iterable[str], None] = None,
) -> AnalyticsFilters:
    return AnalyticsFilters(
        start_date=parse_date(start_date),
        end_date=parse_date(end_date),
        asset_ids=parse_id_list(asset_ids),
        site_ids=parse_id_list(site_ids),
    )
