from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

from .bus import (
    PARTICIPANT_ENROLLED as EVENT_PARTICIPANT_ENROLLED,
    SESSION_MATCH_CLEARED as EVENT_SESSION_MATCH_CLEARED,
    SESSION_MATCHED as EVENT_SESSION_MATCHED,
    SESSION_STATUS_CHANGED as EVENT_SESSION_STATUS_CHANGED,
    SESSION_UPDATED as EVENT_SESSION_UPDATED,
    domain_event,
)
from .models import MatchmakingSession
from .activity_verbs import (
    SESSION_CREATED, SESSION_UPDATED, SESSION_MATCHED, SESSION_MATCH_CLEARED,
    PARTICIPANT_ENROLLED, STATUS_VERBS,
)
from core.services import ActivityService
from core.models import DomainActivity

logger = logging.getLogger('playmatch.matchmaking')


@receiver(post_save, sender=MatchmakingSession)
def log_session_created(sender, instance, created, **kwargs):
    """Log session creation. Later changes arrive as domain events."""
    if not created:
        return
    try:
        ActivityService.log_activity(
            actor=instance.organizer,
            verb=SESSION_CREATED,
            target=instance,
            visibility=DomainActivity.VISIBILITY_PUBLIC,
            metadata={'session_title': instance.title, 'status': instance.status}
        )
        logger.info(f"Activity logged: session.created for session {instance.id}")
    except Exception as e:
        logger.warning(f"Failed to log session activity: {e}")


def _user(user_id):
    if not user_id:
        return None
    return get_user_model().objects.filter(pk=user_id).first()


@receiver(domain_event)
def log_domain_event(sender, event, **kwargs):
    """Mirror matchmaking domain events into the activity ledger."""
    event_type = event.get("type")
    try:
        session = MatchmakingSession.objects.filter(pk=event.get("session_id")).first()
        if session is None:
            # Session not stored in this database (in-process repository)
            return

        if event_type == EVENT_PARTICIPANT_ENROLLED:
            ActivityService.log_activity(
                actor=_user(event["user_id"]),
                verb=PARTICIPANT_ENROLLED,
                target=session,
                metadata={
                    'session_title': session.title,
                    'participant_count': event.get("participant_count"),
                }
            )

        elif event_type == EVENT_SESSION_MATCHED:
            ActivityService.log_activity(
                actor=None,
                verb=SESSION_MATCHED,
                target=session,
                metadata={
                    'groups': event["groups"],
                    'unmatched': event["unmatched"],
                }
            )

        elif event_type == EVENT_SESSION_MATCH_CLEARED:
            ActivityService.log_activity(
                actor=_user(event.get("actor_id")),
                verb=SESSION_MATCH_CLEARED,
                target=session,
                visibility=DomainActivity.VISIBILITY_PRIVATE,
                metadata={
                    'reason': event.get("reason", ""),
                    'previous_groups': event.get("previous_groups", []),
                    'previous_unmatched': event.get("previous_unmatched", []),
                }
            )

        elif event_type == EVENT_SESSION_STATUS_CHANGED:
            verb = STATUS_VERBS.get(event["new_status"])
            if verb is None:
                return
            ActivityService.log_activity(
                actor=_user(event.get("actor_id")),
                verb=verb,
                target=session,
                visibility=DomainActivity.VISIBILITY_PUBLIC,
                metadata={'old_status': event["old_status"], 'new_status': event["new_status"]}
            )

        elif event_type == EVENT_SESSION_UPDATED:
            ActivityService.log_activity(
                actor=_user(event.get("actor_id")),
                verb=SESSION_UPDATED,
                target=session,
                metadata={'fields': event.get("fields", [])}
            )

        else:
            return

        logger.info(f"Activity logged: {event_type} for session {session.id}")
    except Exception as e:
        logger.warning(f"Failed to log {event_type} activity: {e}")
