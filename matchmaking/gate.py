# playmatch/matchmaking/gate.py
"""
Enrollment gate.

The status check, duplicate check, capacity check, append and the decision to
fire the automatic match all happen inside one repository critical section.
The match itself runs after the section is released.
"""
import logging
import uuid
from typing import Callable, Optional

from .bus import PARTICIPANT_ENROLLED, EventBus
from .domain import SessionState
from .exceptions import CapacityExceeded, DuplicateEnrollment, SessionClosed
from .repositories import SessionRepository
from .results import EnrollmentResult, EnrollmentStatus, MatchResult
from .state_machine import can_enroll

logger = logging.getLogger('playmatch.matchmaking')


def new_claim() -> str:
    return uuid.uuid4().hex


def should_trigger(state: SessionState) -> bool:
    """Automatic match fires once the session reaches max_players and nobody has claimed it."""
    return (
        state.auto_match
        and len(state.participants) >= state.max_players
        and not state.is_matched
        and not state.match_claim
    )


class EnrollmentGate:
    def __init__(self, repository: SessionRepository, event_bus: Optional[EventBus] = None,
                 run_match: Optional[Callable[[int, str], Optional[MatchResult]]] = None):
        self.repository = repository
        self.event_bus = event_bus
        # Called with (session_id, claim) after a successful claim
        self.run_match = run_match

    def enroll(self, session_id: int, user_id: int) -> EnrollmentResult:
        token = new_claim()

        def mutator(state: SessionState):
            count = len(state.participants)

            ok, reason = can_enroll(state)
            if not ok:
                raise SessionClosed(reason, session_id=session_id, participant_count=count)

            if user_id in state.participants:
                raise DuplicateEnrollment(
                    f"User {user_id} is already enrolled",
                    session_id=session_id,
                    participant_count=count,
                )

            if count >= state.capacity_ceiling:
                raise CapacityExceeded(
                    f"Session is full ({count}/{state.capacity_ceiling})",
                    session_id=session_id,
                    participant_count=count,
                )

            state.participants.append(user_id)
            if should_trigger(state):
                state.match_claim = token

        try:
            state = self.repository.atomic_update(session_id, mutator)
        except SessionClosed as e:
            logger.info(f"Enrollment rejected: session={session_id}, user={user_id}: {e}")
            return EnrollmentResult(
                EnrollmentStatus.SESSION_CLOSED, session_id, user_id,
                participant_count=e.participant_count,
            )
        except DuplicateEnrollment as e:
            return EnrollmentResult(
                EnrollmentStatus.DUPLICATE_ENROLLMENT, session_id, user_id,
                participant_count=e.participant_count,
            )
        except CapacityExceeded as e:
            logger.info(f"Enrollment rejected: session={session_id}, user={user_id}: {e}")
            return EnrollmentResult(
                EnrollmentStatus.CAPACITY_EXCEEDED, session_id, user_id,
                participant_count=e.participant_count,
            )

        triggered = state.match_claim == token
        logger.info(
            f"Participant enrolled: session={session_id}, user={user_id}, "
            f"count={len(state.participants)}, triggered={triggered}"
        )

        if self.event_bus is not None:
            self.event_bus.publish({
                "type": PARTICIPANT_ENROLLED,
                "session_id": session_id,
                "user_id": user_id,
                "participant_count": len(state.participants),
            })

        result = EnrollmentResult(
            EnrollmentStatus.ENROLLED, session_id, user_id,
            participant_count=len(state.participants),
            triggered=triggered,
        )
        if triggered and self.run_match is not None:
            result.match = self.run_match(session_id, token)
        return result
