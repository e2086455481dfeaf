# playmatch/matchmaking/bus.py
"""
Domain event bus.

Events are plain dicts with a ``type`` key. The default bus forwards them
through the ``domain_event`` Django signal; audit logging and any downstream
notification fan-out subscribe to that signal.
"""
import logging
from typing import Dict

from django.dispatch import Signal

logger = logging.getLogger('playmatch.matchmaking')

SESSION_MATCHED = "session_matched"
SESSION_MATCH_CLEARED = "session_match_cleared"
SESSION_STATUS_CHANGED = "session_status_changed"
SESSION_UPDATED = "session_updated"
PARTICIPANT_ENROLLED = "participant_enrolled"

EVENT_TYPES = [
    SESSION_MATCHED,
    SESSION_MATCH_CLEARED,
    SESSION_STATUS_CHANGED,
    SESSION_UPDATED,
    PARTICIPANT_ENROLLED,
]

# Sent with event=<dict>
domain_event = Signal()


class EventBus:
    def publish(self, event: Dict) -> None:
        raise NotImplementedError


class SignalEventBus(EventBus):
    """Delivers events to ``domain_event`` receivers; a failing receiver never fails the sender."""

    def publish(self, event):
        if event.get("type") not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event.get('type')!r}")

        responses = domain_event.send_robust(sender=self.__class__, event=event)
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.warning(
                    f"Event receiver {getattr(receiver, '__name__', receiver)} failed "
                    f"for {event['type']} (session {event.get('session_id')}): {response}"
                )
