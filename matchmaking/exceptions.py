# playmatch/matchmaking/exceptions.py
"""
Matchmaking error taxonomy.

Enrollment rule violations (SessionClosed, DuplicateEnrollment,
CapacityExceeded) are raised inside the gate's repository mutator so the
critical section rolls back, and the gate turns them into typed results.
AlreadyMatched is raised by session edits once a result is stored and, like
the remaining errors, reaches the caller.
"""


class MatchmakingError(Exception):
    code = "matchmaking_error"

    def __init__(self, message="", session_id=None):
        super().__init__(message or self.code)
        self.session_id = session_id


class SessionNotFound(MatchmakingError):
    code = "session_not_found"


class ParticipantNotFound(MatchmakingError):
    """The participant directory has no record for an enrolled user."""
    code = "participant_not_found"

    def __init__(self, message="", user_ids=None):
        super().__init__(message)
        self.user_ids = list(user_ids or [])


class ConflictError(MatchmakingError):
    """Concurrent mutation detected; safe to retry."""
    code = "conflict"
    retryable = True


class PermissionDenied(MatchmakingError):
    code = "permission_denied"


class InvalidTransition(MatchmakingError):
    code = "invalid_transition"


class EnrollmentRejected(MatchmakingError):
    code = "enrollment_rejected"

    def __init__(self, message="", session_id=None, participant_count=None):
        super().__init__(message, session_id=session_id)
        self.participant_count = participant_count


class SessionClosed(EnrollmentRejected):
    code = "session_closed"


class DuplicateEnrollment(EnrollmentRejected):
    code = "duplicate_enrollment"


class CapacityExceeded(EnrollmentRejected):
    code = "capacity_exceeded"


class AlreadyMatched(MatchmakingError):
    code = "already_matched"
