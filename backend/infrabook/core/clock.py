"""
Engine clock. All lifecycle rules compare against facility wall time (naive datetimes),
the same frame slot dates and times are stored in. Services take `now` explicitly and
fall back to this only at the edges (routes, scheduler).
"""
from datetime import datetime
from zoneinfo import ZoneInfo

from infrabook.config import settings


def now() -> datetime:
    if settings.facility_timezone:
        return datetime.now(ZoneInfo(settings.facility_timezone)).replace(tzinfo=None, microsecond=0)
    return datetime.now().replace(microsecond=0)
