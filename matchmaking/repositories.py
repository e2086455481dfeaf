# playmatch/matchmaking/repositories.py
"""
Session storage behind a narrow interface.

``atomic_update(session_id, mutator)`` is the per-session critical section:
the mutator receives a fresh SessionState, changes it in place (or raises to
abort without writing), and the result is stored with the version bumped.
Different sessions never share a lock.
"""
import threading
from datetime import datetime
from typing import Callable, Dict, List

from django.db import transaction

from .domain import STATUS_IN_PROGRESS, STATUS_OPEN, SessionState
from .exceptions import ConflictError, SessionNotFound
from .models import MatchmakingSession
from . import datetime_utils

Mutator = Callable[[SessionState], None]


class SessionRepository:
    def add(self, state: SessionState) -> SessionState:
        raise NotImplementedError

    def load(self, session_id: int) -> SessionState:
        raise NotImplementedError

    def atomic_update(self, session_id: int, mutator: Mutator) -> SessionState:
        raise NotImplementedError

    def due_for_lifecycle(self, now: datetime) -> List[int]:
        """Ids of sessions whose time window calls for an automatic transition."""
        raise NotImplementedError


class DjangoSessionRepository(SessionRepository):
    """
    ORM-backed repository.

    The row is locked with select_for_update for the duration of the mutator
    and written back with a version compare-and-swap, so backends without
    row locks (SQLite) still detect interleaved writers.
    """

    def add(self, state):
        fields = MatchmakingSession.fields_from_state(state)
        obj = MatchmakingSession.objects.create(**fields)
        return obj.to_state()

    def load(self, session_id):
        try:
            obj = MatchmakingSession.objects.get(pk=session_id)
        except MatchmakingSession.DoesNotExist:
            raise SessionNotFound(f"Session {session_id} not found", session_id=session_id)
        return obj.to_state()

    def atomic_update(self, session_id, mutator):
        with transaction.atomic():
            try:
                obj = MatchmakingSession.objects.select_for_update().get(pk=session_id)
            except MatchmakingSession.DoesNotExist:
                raise SessionNotFound(f"Session {session_id} not found", session_id=session_id)

            state = obj.to_state()
            expected_version = state.version
            mutator(state)
            state.id = obj.pk
            state.version = expected_version + 1

            fields = MatchmakingSession.fields_from_state(state)
            fields["updated_at"] = datetime_utils.now()
            updated = (
                MatchmakingSession.objects
                .filter(pk=session_id, version=expected_version)
                .update(**fields)
            )
            if not updated:
                raise ConflictError(
                    f"Session {session_id} changed concurrently (version {expected_version})",
                    session_id=session_id,
                )
        return state

    def due_for_lifecycle(self, now):
        from django.db.models import Q

        return list(
            MatchmakingSession.objects
            .filter(
                Q(status=STATUS_OPEN, start_time__lte=now)
                | Q(status=STATUS_IN_PROGRESS, end_time__lt=now)
            )
            .order_by("start_time", "pk")
            .values_list("pk", flat=True)
        )


class InMemorySessionRepository(SessionRepository):
    """
    Process-local repository guarded by one lock per session.

    Suitable for embedding the engine without a database (and for exercising
    concurrent enrollment in tests).
    """

    def __init__(self):
        self._sessions: Dict[int, SessionState] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._next_id = 1

    def _lock_for(self, session_id):
        with self._registry_lock:
            return self._locks.setdefault(session_id, threading.Lock())

    def add(self, state):
        with self._registry_lock:
            stored = state.copy()
            if stored.id is None:
                stored.id = self._next_id
            self._next_id = max(self._next_id, stored.id) + 1
            self._sessions[stored.id] = stored
        return stored.copy()

    def load(self, session_id):
        with self._lock_for(session_id):
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFound(f"Session {session_id} not found", session_id=session_id)
            return current.copy()

    def atomic_update(self, session_id, mutator):
        with self._lock_for(session_id):
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFound(f"Session {session_id} not found", session_id=session_id)
            state = current.copy()
            mutator(state)
            state.id = session_id
            state.version = current.version + 1
            self._sessions[session_id] = state
            return state.copy()

    def due_for_lifecycle(self, now):
        due = []
        with self._registry_lock:
            sessions = list(self._sessions.values())
        for state in sessions:
            if state.status == STATUS_OPEN and state.start_time and state.start_time <= now:
                due.append(state.id)
            elif state.status == STATUS_IN_PROGRESS and state.end_time and state.end_time < now:
                due.append(state.id)
        return sorted(due)
