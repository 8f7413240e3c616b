import asyncio
import json
import math
from datetime import date, datetime, timedelta, timezone

import numpy as np
import pytz

# Mean equatorial radius, matching the geodesic distance used for range filtering
EARTH_RADIUS_M = 6378137.0


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.ndarray):
            # Convert NumPy arrays to lists
            return obj.tolist()
        elif isinstance(obj, np.generic):
            return obj.item()
        elif isinstance(obj, datetime):
            # Format datetime objects as strings
            return obj.isoformat()
        elif isinstance(obj, date):
            return obj.isoformat()
        # Let the base class default method raise the TypeError
        return json.JSONEncoder.default(self, obj)


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def floor_to_minute(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(second=0, microsecond=0)


def ceil_to_minute(dt: datetime) -> datetime:
    floored = floor_to_minute(dt)
    return floored if floored == ensure_utc(dt) else floored + timedelta(minutes=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_to_local(utc_dt: datetime, tz: str = "UTC") -> datetime:
    return ensure_utc(utc_dt).astimezone(pytz.timezone(tz))


def ground_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (degrees) in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


async def wait_until_first_completed(events: list[asyncio.Event], coroutines: list = None):
    """Wait until the first event or coroutine in the list is completed and return the completed task."""
    if coroutines is None:
        coroutines = []
    event_tasks = [asyncio.create_task(event.wait()) for event in events]
    coroutine_tasks = [asyncio.create_task(coro) for coro in coroutines]
    done, pending = await asyncio.wait(event_tasks + coroutine_tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    return done.pop()
