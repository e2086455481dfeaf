# matchmaking/tasks.py
import logging
from typing import Optional

from celery import shared_task

from .exceptions import ConflictError, SessionNotFound

logger = logging.getLogger('playmatch.matchmaking')


@shared_task(bind=True, max_retries=3)
def run_auto_match_task(self, session_id: int, claim: Optional[str]):
    """
    Run an automatic match claimed by an enrollment.

    Returns the MatchStatus value. A failed run has already released its
    claim, so a concurrent write is retried as an unclaimed run; the
    publisher still refuses a second result.
    """
    from .services import get_matchmaking_service

    service = get_matchmaking_service()
    try:
        result = service.run_match(session_id, claim=claim)
    except SessionNotFound:
        return "session_not_found"
    except ConflictError as exc:
        logger.warning(f"Automatic match conflicted: session={session_id}; retrying")
        raise self.retry(args=(session_id, None), exc=exc, countdown=2 ** self.request.retries)

    logger.info(f"Automatic match task finished: session={session_id}, status={result.status}")
    return result.status


@shared_task
def advance_session_lifecycle_task():
    """
    Periodic sweep: open → in_progress at start_time, in_progress → completed
    after end_time. Scheduled by CELERY_BEAT_SCHEDULE.
    """
    from .services import get_matchmaking_service

    applied = get_matchmaking_service().advance_lifecycle()
    return len(applied)
