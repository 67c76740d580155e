from datetime import datetime, timezone
from typing import Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_z(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def stamp(dt: datetime) -> Tuple[int, str]:
    """(epoch ms, ISO-8601 Z) pair used for created_at / updated_at fields."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000), to_iso_z(dt)


def ensure_aware(dt: datetime) -> datetime:
    # motor devolve datetimes naive quando tz_aware=False
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
