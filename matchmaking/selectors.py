# playmatch/matchmaking/selectors.py
"""Read-side queries for session discovery."""
from typing import Dict, List, Optional

from django.conf import settings
from django.db.models import Q

from . import datetime_utils
from .models import MatchmakingSession

STATUS_ALL = "all"


def default_page_size() -> int:
    return settings.REST_FRAMEWORK.get("PAGE_SIZE", 20)


def list_sessions(filters: Optional[Dict] = None, limit: Optional[int] = None,
                  offset: int = 0) -> List[MatchmakingSession]:
    """
    Sessions matching ``filters``, ordered by start time.

    Supported filters: activity_type, skill_level, status (defaults to open;
    "all" disables it), timeframe ("upcoming", "ongoing" or "past"),
    organizer (user id), participant (user id) and search (title/description).
    """
    filters = filters or {}
    qs = MatchmakingSession.objects.select_related("organizer")

    status_param = filters.get("status") or MatchmakingSession.STATUS_OPEN
    if status_param != STATUS_ALL:
        qs = qs.filter(status=status_param)

    activity_type = filters.get("activity_type")
    if activity_type:
        qs = qs.filter(activity_type=activity_type)

    skill_level = filters.get("skill_level")
    if skill_level:
        qs = qs.filter(skill_level=skill_level)

    organizer = filters.get("organizer")
    if organizer:
        qs = qs.filter(organizer_id=organizer)

    timeframe = filters.get("timeframe")
    now = datetime_utils.now()
    if timeframe == "upcoming":
        qs = qs.filter(start_time__gte=now)
    elif timeframe == "past":
        qs = qs.filter(end_time__lt=now)
    elif timeframe == "ongoing":
        qs = qs.filter(start_time__lte=now, end_time__gte=now)

    search = filters.get("search")
    if search:
        qs = qs.filter(
            Q(title__icontains=search) |
            Q(description__icontains=search)
        )

    qs = qs.order_by("start_time", "pk")

    if limit is None:
        limit = default_page_size()

    participant = filters.get("participant")
    if participant:
        # JSON containment lookups are not portable across backends (SQLite)
        participant = int(participant)
        sessions = [s for s in qs if participant in (s.participants or [])]
        return sessions[offset:offset + limit]

    return list(qs[offset:offset + limit])
