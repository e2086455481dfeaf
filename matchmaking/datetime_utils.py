# playmatch/matchmaking/datetime_utils.py
"""
Centralized datetime handling for sessions.

All "now" lookups go through here so lifecycle sweeps and tests agree on the
clock (naive while USE_TZ=False, aware otherwise).
"""
from datetime import datetime
from typing import Optional
from django.utils import timezone


def now() -> datetime:
    """
    Get current datetime (timezone-aware when USE_TZ=True).
    """
    return timezone.now()


def format_for_api(dt: Optional[datetime]) -> Optional[str]:
    """
    Format datetime for API responses (ISO 8601).

    Returns None if input is None.
    """
    if dt is None:
        return None
    return dt.isoformat()
