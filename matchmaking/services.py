# playmatch/matchmaking/services.py
"""
MatchmakingService: the in-process entry point for enrollment, matching and
session management. Transports (views, consumers, CLI) wrap these calls.
"""
import logging
from typing import Callable, List, Optional, Tuple

from django.conf import settings
from django.db import transaction

from . import datetime_utils
from .bus import (
    SESSION_MATCH_CLEARED,
    SESSION_STATUS_CHANGED,
    SESSION_UPDATED,
    EventBus,
    SignalEventBus,
)
from .directory import ParticipantDirectory, UserParticipantDirectory
from .domain import (
    REASON_INSUFFICIENT_PARTICIPANTS,
    STATUS_DRAFT,
    STATUS_CANCELLED,
    STATUS_OPEN,
    Preferences,
    SessionState,
    UnmatchedParticipant,
    skill_rank,
)
from .exceptions import AlreadyMatched, ConflictError, InvalidTransition, PermissionDenied
from .gate import EnrollmentGate, new_claim, should_trigger
from .grouping import form_groups
from .policies import SessionPolicy
from .publisher import MatchResultPublisher
from .repositories import DjangoSessionRepository, SessionRepository
from .results import EnrollmentResult, MatchResult, MatchState, MatchStatus, PublishOutcome
from .serializers import SessionInputSerializer
from .state_machine import apply_transition, can_match, due_transition, validate_action_for_status

logger = logging.getLogger('playmatch.matchmaking')

# Fields of SessionInputSerializer copied verbatim onto SessionState
_PLAIN_FIELDS = (
    "title", "description", "activity_type", "skill_level", "location_ref", "virtual_url",
    "start_time", "end_time", "min_players", "max_players", "max_groups", "auto_match",
)


class MatchmakingService:
    def __init__(self, repository: SessionRepository, directory: ParticipantDirectory,
                 event_bus: Optional[EventBus] = None,
                 schedule_match: Optional[Callable[[int, str], None]] = None,
                 join_threshold: Optional[float] = None):
        self.repository = repository
        self.directory = directory
        self.event_bus = event_bus or SignalEventBus()
        # When set, claimed automatic runs are handed off instead of run inline
        self.schedule_match = schedule_match
        self.join_threshold = join_threshold
        self.publisher = MatchResultPublisher(repository, self.event_bus)
        self.gate = EnrollmentGate(repository, self.event_bus, run_match=self._run_claimed)

    # ----- enrollment & matching -----

    def enroll(self, session_id: int, user_id: int) -> EnrollmentResult:
        return self.gate.enroll(session_id, user_id)

    def trigger_match(self, session_id: int) -> MatchResult:
        """
        Run matching now, regardless of auto_match or the enrollment threshold.

        Idempotent: once a result is stored every call returns it as
        ALREADY_MATCHED and storage is left untouched.
        """
        return self.run_match(session_id)

    def run_match(self, session_id: int, claim: Optional[str] = None) -> MatchResult:
        """
        Compute and publish groups for ``session_id``.

        ``claim`` identifies an automatic run started by the enrollment gate; the
        claim is released on every exit path.
        """
        try:
            state = self.repository.load(session_id)

            if state.is_matched:
                self.publisher.release_claim(session_id, claim)
                return MatchResult(MatchStatus.ALREADY_MATCHED, session_id,
                                   state.matched_groups, state.unmatched)

            ok, reason = can_match(state)
            if not ok:
                logger.info(f"Match not run: session={session_id}: {reason}")
                self.publisher.release_claim(session_id, claim)
                return MatchResult(MatchStatus.SESSION_CLOSED, session_id)

            if claim and state.match_claim != claim:
                logger.warning(f"Match claim for session={session_id} was revoked before the run started")
                return MatchResult(MatchStatus.DISCARDED, session_id)

            if len(state.participants) < state.min_players:
                self.publisher.release_claim(session_id, claim)
                return MatchResult(
                    MatchStatus.INSUFFICIENT_PARTICIPANTS,
                    session_id,
                    unmatched=[
                        UnmatchedParticipant(pid, REASON_INSUFFICIENT_PARTICIPANTS)
                        for pid in state.participants
                    ],
                )

            participants = self.directory.get_many(state.participants)
            groups, unmatched = form_groups(
                participants,
                state.preferences,
                state.min_players,
                state.max_players,
                baseline_skill=skill_rank(state.skill_level),
                join_threshold=self.join_threshold,
            )
            outcome = self.publisher.publish(session_id, groups, unmatched, claim=claim)
        except Exception:
            if claim:
                logger.error(f"Match run failed: session={session_id}; releasing claim")
                self.publisher.release_claim(session_id, claim)
            raise

        if outcome == PublishOutcome.PUBLISHED:
            return MatchResult(MatchStatus.MATCHED, session_id, groups, unmatched)
        if outcome == PublishOutcome.NOTHING_TO_PUBLISH:
            return MatchResult(MatchStatus.NO_VALID_GROUPS, session_id, [], unmatched)
        if outcome == PublishOutcome.ALREADY_MATCHED:
            stored = self.repository.load(session_id)
            return MatchResult(MatchStatus.ALREADY_MATCHED, session_id,
                               stored.matched_groups, stored.unmatched)
        return MatchResult(MatchStatus.DISCARDED, session_id)

    def get_match_state(self, session_id: int) -> MatchState:
        state = self.repository.load(session_id)
        return MatchState(
            session_id=session_id,
            status=state.status,
            groups=state.matched_groups,
            unmatched=state.unmatched,
            matched_at=state.matched_at,
            participant_count=len(state.participants),
        )

    def _run_claimed(self, session_id: int, claim: str) -> MatchResult:
        if self.schedule_match is not None:
            self.schedule_match(session_id, claim)
            logger.info(f"Automatic match scheduled: session={session_id}")
            return MatchResult(MatchStatus.SCHEDULED, session_id)
        return self.run_match(session_id, claim=claim)

    # ----- lifecycle -----

    def transition(self, session_id: int, new_status: str, actor=None) -> Tuple[bool, str]:
        """
        Move a session to ``new_status``. ``actor=None`` is the system.

        Returns (success: bool, message: str); raises PermissionDenied when the
        actor may not manage the session.
        """
        state = self.repository.load(session_id)
        allowed, reason = SessionPolicy.can_manage_session(actor, state)
        if not allowed:
            raise PermissionDenied(reason, session_id=session_id)

        actor_id = actor.pk if actor is not None else None
        old_status = None
        message = ""

        def mutator(current: SessionState):
            nonlocal old_status, message
            old_status = current.status
            success, message = apply_transition(current, new_status, actor_id=actor_id)
            if not success:
                raise InvalidTransition(message, session_id=session_id)

        try:
            self.repository.atomic_update(session_id, mutator)
        except InvalidTransition as e:
            return False, str(e)

        if old_status != new_status:
            self._status_changed(session_id, old_status, new_status, actor_id)
        return True, message

    def cancel(self, session_id: int, actor=None) -> Tuple[bool, str]:
        return self.transition(session_id, STATUS_CANCELLED, actor=actor)

    def advance_lifecycle(self, now=None) -> List[Tuple[int, str]]:
        """
        Apply time-driven transitions (open → in_progress at start_time,
        in_progress → completed after end_time). Returns the (session_id,
        new_status) pairs applied.
        """
        now = now or datetime_utils.now()
        applied = []

        for session_id in self.repository.due_for_lifecycle(now):
            change = {}

            def mutator(state: SessionState):
                target = due_transition(state, now)
                if target is None:
                    raise InvalidTransition("Nothing due", session_id=session_id)
                change["from"] = state.status
                apply_transition(state, target)
                change["to"] = target

            try:
                self.repository.atomic_update(session_id, mutator)
            except InvalidTransition:
                continue
            except ConflictError as e:
                logger.warning(f"Lifecycle sweep skipped session {session_id}: {e}")
                continue

            self._status_changed(session_id, change["from"], change["to"], None)
            applied.append((session_id, change["to"]))

        if applied:
            logger.info(f"Lifecycle sweep advanced {len(applied)} session(s)")
        return applied

    def clear_match(self, session_id: int, actor, reason: str = "") -> Tuple[bool, str]:
        """
        Reset a published result so the session can be matched again.

        The only way matched_groups is ever rewritten; the previous groups are
        carried in the emitted event (and so in the audit log).
        """
        state = self.repository.load(session_id)
        allowed, why = SessionPolicy.can_manage_session(actor, state)
        if not allowed:
            raise PermissionDenied(why, session_id=session_id)

        previous = {}

        def mutator(current: SessionState):
            ok, message = can_match(current)
            if not ok:
                raise InvalidTransition(message, session_id=session_id)
            if not current.is_matched and not current.match_claim:
                raise InvalidTransition("Session has no match to clear", session_id=session_id)
            previous["groups"] = current.matched_groups
            previous["unmatched"] = [u.to_dict() for u in current.unmatched]
            current.matched_groups = []
            current.unmatched = []
            current.matched_at = None
            current.match_claim = ""

        try:
            self.repository.atomic_update(session_id, mutator)
        except InvalidTransition as e:
            return False, str(e)

        actor_id = actor.pk if actor is not None else None
        logger.info(f"Match cleared: session={session_id}, actor={actor_id or 'system'}, reason={reason!r}")
        self.event_bus.publish({
            "type": SESSION_MATCH_CLEARED,
            "session_id": session_id,
            "actor_id": actor_id,
            "reason": reason,
            "previous_groups": previous["groups"],
            "previous_unmatched": previous["unmatched"],
        })
        return True, "Match cleared"

    def _status_changed(self, session_id, old_status, new_status, actor_id):
        self.event_bus.publish({
            "type": SESSION_STATUS_CHANGED,
            "session_id": session_id,
            "old_status": old_status,
            "new_status": new_status,
            "actor_id": actor_id,
        })

    # ----- session management -----

    def create_session(self, organizer, data) -> SessionState:
        allowed, reason = SessionPolicy.can_create_session(organizer)
        if not allowed:
            raise PermissionDenied(reason)

        serializer = SessionInputSerializer(data=data)
        serializer.is_valid(raise_exception=True)
        values = dict(serializer.validated_data)

        state = SessionState(
            id=None,
            title=values["title"],
            organizer_id=organizer.pk,
            min_players=values["min_players"],
            max_players=values["max_players"],
            status=values.get("status", STATUS_DRAFT),
            preferences=values.get("preferences") or Preferences(),
        )
        for name in _PLAIN_FIELDS:
            if name in values:
                setattr(state, name, values[name])
        if "max_groups" not in values:
            state.max_groups = settings.MATCHMAKING.get("MAX_GROUPS_DEFAULT", 10)

        state = self.repository.add(state)
        logger.info(f"Session created: session={state.id}, organizer={organizer.pk}, status={state.status}")
        return state

    def update_session(self, session_id: int, actor, data) -> SessionState:
        """
        Partial update of an unmatched draft/open session. Lowering max_players
        to the current enrollment fires the automatic match like an enrollment
        would.
        """
        state = self.repository.load(session_id)
        allowed, reason = SessionPolicy.can_manage_session(actor, state)
        if not allowed:
            raise PermissionDenied(reason, session_id=session_id)

        serializer = SessionInputSerializer(instance=state, data=data, partial=True)
        serializer.is_valid(raise_exception=True)
        values = dict(serializer.validated_data)
        token = None

        def mutator(current: SessionState):
            nonlocal token
            ok, message = validate_action_for_status(current, 'edit')
            if not ok:
                raise InvalidTransition(message, session_id=session_id)
            if current.is_matched or current.match_claim:
                raise AlreadyMatched("Session has already been matched", session_id=session_id)

            for name in _PLAIN_FIELDS:
                if name in values:
                    setattr(current, name, values[name])
            if "preferences" in values:
                current.preferences = values["preferences"] or Preferences()

            if len(current.participants) > current.capacity_ceiling:
                raise ConflictError(
                    f"Capacity {current.capacity_ceiling} is below the enrolled participants",
                    session_id=session_id,
                )
            if current.status == STATUS_OPEN and should_trigger(current):
                token = current.match_claim = new_claim()

        state = self.repository.atomic_update(session_id, mutator)
        actor_id = actor.pk if actor is not None else None
        logger.info(f"Session updated: session={session_id}, fields={sorted(values)}")
        self.event_bus.publish({
            "type": SESSION_UPDATED,
            "session_id": session_id,
            "actor_id": actor_id,
            "fields": sorted(values),
        })

        if token:
            self._run_claimed(session_id, token)
            state = self.repository.load(session_id)
        return state


def _schedule_after_commit(session_id: int, claim: str) -> None:
    from .tasks import run_auto_match_task

    transaction.on_commit(lambda: run_auto_match_task.delay(session_id, claim))


def get_matchmaking_service() -> MatchmakingService:
    """Service wired to the ORM, the user directory and the signal bus."""
    config = getattr(settings, "MATCHMAKING", {})
    schedule = _schedule_after_commit if config.get("ASYNC_TRIGGER") else None
    return MatchmakingService(
        repository=DjangoSessionRepository(),
        directory=UserParticipantDirectory(),
        event_bus=SignalEventBus(),
        schedule_match=schedule,
    )
