# playmatch/matchmaking/publisher.py
"""
Writes a computed partition back to the session, at most once.

The one-shot guard is re-checked under a fresh critical section, so a result
computed for a session that was cancelled (or matched by another path) in the
meantime is dropped here rather than at compute time.
"""
import logging
from typing import Optional, Sequence

from . import datetime_utils
from .bus import SESSION_MATCHED, EventBus
from .domain import SessionState, UnmatchedParticipant
from .repositories import SessionRepository
from .results import PublishOutcome
from .state_machine import can_match

logger = logging.getLogger('playmatch.matchmaking')


class _Unchanged(Exception):
    """Aborts a critical section that has nothing to write."""


class MatchResultPublisher:
    def __init__(self, repository: SessionRepository, event_bus: Optional[EventBus] = None):
        self.repository = repository
        self.event_bus = event_bus

    def publish(self, session_id: int, groups: Sequence[Sequence[int]],
                unmatched: Sequence[UnmatchedParticipant], claim: Optional[str] = None) -> str:
        """
        Persist ``groups``/``unmatched`` unless the session already has a
        result or no longer allows matching. ``claim`` is the token of the
        automatic run being published; it is released whatever the outcome.

        Returns a PublishOutcome value.
        """
        groups = [list(g) for g in groups]
        unmatched = list(unmatched)
        outcome = None

        def mutator(state: SessionState):
            nonlocal outcome
            releases_claim = bool(claim) and state.match_claim == claim

            ok, _ = can_match(state)
            if not ok:
                outcome = PublishOutcome.DISCARDED
            elif state.is_matched:
                outcome = PublishOutcome.ALREADY_MATCHED
            elif claim and state.match_claim != claim:
                # Claim revoked (match cleared) while the groups were computed
                outcome = PublishOutcome.DISCARDED
            elif not groups:
                outcome = PublishOutcome.NOTHING_TO_PUBLISH
            else:
                outcome = PublishOutcome.PUBLISHED
                state.matched_groups = groups
                state.unmatched = unmatched
                state.matched_at = datetime_utils.now()

            if releases_claim:
                state.match_claim = ""
            elif outcome != PublishOutcome.PUBLISHED:
                raise _Unchanged()

        try:
            self.repository.atomic_update(session_id, mutator)
        except _Unchanged:
            pass

        if outcome == PublishOutcome.DISCARDED:
            logger.warning(f"Match result discarded: session={session_id} no longer accepts this run")
        elif outcome == PublishOutcome.ALREADY_MATCHED:
            logger.info(f"Match result not stored: session={session_id} is already matched")
        elif outcome == PublishOutcome.PUBLISHED:
            logger.info(
                f"Match published: session={session_id}, groups={len(groups)}, "
                f"unmatched={len(unmatched)}"
            )
            if self.event_bus is not None:
                self.event_bus.publish({
                    "type": SESSION_MATCHED,
                    "session_id": session_id,
                    "groups": groups,
                    "unmatched": [u.to_dict() for u in unmatched],
                })
        return outcome

    def release_claim(self, session_id: int, claim: Optional[str]) -> bool:
        """Drop ``claim`` if it is still the session's active claim."""
        if not claim:
            return False

        def mutator(state: SessionState):
            if state.match_claim != claim:
                raise _Unchanged()
            state.match_claim = ""

        try:
            self.repository.atomic_update(session_id, mutator)
        except _Unchanged:
            return False
        logger.info(f"Match claim released: session={session_id}")
        return True
