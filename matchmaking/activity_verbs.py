# playmatch/matchmaking/activity_verbs.py
"""
Activity verbs for DomainActivity.

All matchmaking audit logging uses these constants so the ledger can be
filtered consistently.
"""

# Session lifecycle
SESSION_CREATED = "session.created"
SESSION_UPDATED = "session.updated"
SESSION_OPENED = "session.opened"
SESSION_STARTED = "session.started"
SESSION_COMPLETED = "session.completed"
SESSION_CANCELLED = "session.cancelled"

# Enrollment
PARTICIPANT_ENROLLED = "participant.enrolled"

# Matching
SESSION_MATCHED = "session.matched"
SESSION_MATCH_CLEARED = "session.match_cleared"

# new status -> verb
STATUS_VERBS = {
    "open": SESSION_OPENED,
    "in_progress": SESSION_STARTED,
    "completed": SESSION_COMPLETED,
    "cancelled": SESSION_CANCELLED,
}

# Grouped by category for filtering
VERB_CATEGORIES = {
    "session": [
        SESSION_CREATED, SESSION_UPDATED, SESSION_OPENED,
        SESSION_STARTED, SESSION_COMPLETED, SESSION_CANCELLED,
    ],
    "enrollment": [
        PARTICIPANT_ENROLLED,
    ],
    "matching": [
        SESSION_MATCHED, SESSION_MATCH_CLEARED,
    ],
}


def get_all_verbs():
    """Return a flat list of all defined verbs."""
    verbs = []
    for category_verbs in VERB_CATEGORIES.values():
        verbs.extend(category_verbs)
    return verbs


def is_valid_verb(verb: str) -> bool:
    return verb in get_all_verbs()
