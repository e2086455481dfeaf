# playmatch/matchmaking/results.py
"""Typed outcomes returned by the exposed matchmaking operations."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .datetime_utils import format_for_api
from .domain import UnmatchedParticipant


class EnrollmentStatus:
    ENROLLED = "enrolled"
    DUPLICATE_ENROLLMENT = "duplicate_enrollment"
    SESSION_CLOSED = "session_closed"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class MatchStatus:
    MATCHED = "matched"
    ALREADY_MATCHED = "already_matched"
    INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
    # Every participant ended up unmatched (e.g. hard constraints everywhere)
    NO_VALID_GROUPS = "no_valid_groups"
    SESSION_CLOSED = "session_closed"
    # Session was cancelled while the groups were being computed
    DISCARDED = "discarded"
    # Handed to a Celery worker
    SCHEDULED = "scheduled"


class PublishOutcome:
    PUBLISHED = "published"
    ALREADY_MATCHED = "already_matched"
    NOTHING_TO_PUBLISH = "nothing_to_publish"
    DISCARDED = "discarded"


@dataclass
class MatchResult:
    status: str
    session_id: int
    groups: List[List[int]] = field(default_factory=list)
    unmatched: List[UnmatchedParticipant] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "session_id": self.session_id,
            "groups": [list(g) for g in self.groups],
            "unmatched": [u.to_dict() for u in self.unmatched],
        }


@dataclass
class EnrollmentResult:
    status: str
    session_id: int
    user_id: int
    participant_count: Optional[int] = None
    # True when this enrollment claimed the one-shot automatic match
    triggered: bool = False
    match: Optional[MatchResult] = None

    @property
    def ok(self) -> bool:
        # A retried enrollment that finds itself already enrolled is a success
        return self.status in (EnrollmentStatus.ENROLLED, EnrollmentStatus.DUPLICATE_ENROLLMENT)


@dataclass
class MatchState:
    session_id: int
    status: str
    groups: List[List[int]] = field(default_factory=list)
    unmatched: List[UnmatchedParticipant] = field(default_factory=list)
    matched_at: Optional[datetime] = None
    participant_count: int = 0

    def to_dict(self) -> Dict:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "groups": [list(g) for g in self.groups],
            "unmatched": [u.to_dict() for u in self.unmatched],
            "matched_at": format_for_api(self.matched_at),
            "participant_count": self.participant_count,
        }
