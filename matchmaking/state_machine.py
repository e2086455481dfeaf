# playmatch/matchmaking/state_machine.py
"""
Session State Machine.

Enforces valid state transitions for the session lifecycle:
draft → open → in_progress → completed
  └──────┴──────────┴→ cancelled

Any transition not in VALID_TRANSITIONS is rejected. Functions operate on
SessionState snapshots; persisting the change is the caller's job (inside a
repository critical section).
"""
from datetime import datetime
from typing import Optional, Tuple
import logging

from .domain import (
    STATUS_CANCELLED,
    STATUS_CHOICES,
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    SessionState,
)

logger = logging.getLogger('playmatch.matchmaking')


# Valid state transitions: from_status -> list of allowed to_statuses
VALID_TRANSITIONS = {
    STATUS_DRAFT: [STATUS_OPEN, STATUS_CANCELLED],
    STATUS_OPEN: [STATUS_IN_PROGRESS, STATUS_CANCELLED],
    STATUS_IN_PROGRESS: [STATUS_COMPLETED, STATUS_CANCELLED],
    STATUS_COMPLETED: [],
    STATUS_CANCELLED: [],
}

MATCHABLE_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS)
EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_OPEN)


def can_transition(session: SessionState, new_status: str) -> Tuple[bool, str]:
    """
    Check if a session can transition to a new status.

    Returns (can_transition: bool, reason: str)
    """
    current_status = session.status

    if new_status == current_status:
        return True, "Same status"

    if new_status not in dict(STATUS_CHOICES):
        return False, f"Invalid status: {new_status}"

    allowed = VALID_TRANSITIONS.get(current_status, [])

    if new_status not in allowed:
        return False, f"Cannot transition from '{current_status}' to '{new_status}'"

    return True, ""


def apply_transition(session: SessionState, new_status: str, actor_id=None) -> Tuple[bool, str]:
    """
    Move ``session`` to ``new_status`` in place.

    Cancelling drops an in-flight (unpublished) match claim so the pending
    publish is discarded; an already published result is left untouched.

    Returns (success: bool, message: str)
    """
    can, reason = can_transition(session, new_status)

    if not can:
        logger.warning(
            f"Invalid state transition attempted: session={session.id}, "
            f"from={session.status}, to={new_status}, actor={actor_id or 'system'}. "
            f"Reason: {reason}"
        )
        return False, reason

    old_status = session.status
    if old_status == new_status:
        return True, reason

    session.status = new_status
    if new_status == STATUS_CANCELLED:
        session.match_claim = ""

    logger.info(
        f"Session state transition: session={session.id}, "
        f"from={old_status}, to={new_status}, actor={actor_id or 'system'}"
    )

    return True, f"Transitioned from '{old_status}' to '{new_status}'"


def get_allowed_transitions(session: SessionState) -> list:
    return VALID_TRANSITIONS.get(session.status, [])


def is_terminal_status(status: str) -> bool:
    """Completed and cancelled sessions accept no further transitions."""
    return status not in VALID_TRANSITIONS or len(VALID_TRANSITIONS[status]) == 0


def due_transition(session: SessionState, now: datetime) -> Optional[str]:
    """
    Automatic transition the time window calls for, if any.

    - open → in_progress once start_time is reached
    - in_progress → completed once end_time has passed
    """
    if session.status == STATUS_OPEN and session.start_time and session.start_time <= now:
        return STATUS_IN_PROGRESS
    if session.status == STATUS_IN_PROGRESS and session.end_time and session.end_time < now:
        return STATUS_COMPLETED
    return None


def validate_action_for_status(session: SessionState, action: str) -> Tuple[bool, str]:
    """
    Validate if an action is allowed given the session's current status.

    Actions and their requirements:
    - 'enroll': session must be OPEN
    - 'match': session must be OPEN or IN_PROGRESS
    - 'edit': session must be DRAFT or OPEN
    """
    status = session.status

    if action == 'enroll':
        if status != STATUS_OPEN:
            return False, "Enrollment is only open for open sessions"
        return True, ""

    elif action == 'match':
        if status not in MATCHABLE_STATUSES:
            return False, f"Matching is not allowed while the session is '{status}'"
        return True, ""

    elif action == 'edit':
        if status not in EDITABLE_STATUSES:
            return False, f"Session can no longer be edited ('{status}')"
        return True, ""

    return False, f"Unknown action: {action}"


def can_enroll(session: SessionState) -> Tuple[bool, str]:
    return validate_action_for_status(session, 'enroll')


def can_match(session: SessionState) -> Tuple[bool, str]:
    return validate_action_for_status(session, 'match')
