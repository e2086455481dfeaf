# playmatch/matchmaking/policies.py
"""
Centralized permission checks for session management.

The service layer calls these instead of inline role checks.
"""
from typing import Tuple

from .domain import SessionState

ORGANIZER_ROLES = ('organizer', 'admin')


class SessionPolicy:

    @staticmethod
    def is_system_admin(user) -> bool:
        """Check if user is a system-level admin."""
        if not user or not user.is_authenticated:
            return False
        return user.is_superuser or getattr(user, 'role', None) == 'admin'

    @staticmethod
    def is_organizer(user, session: SessionState) -> bool:
        if not user or not user.is_authenticated or session is None:
            return False
        return user.pk == session.organizer_id

    @staticmethod
    def can_create_session(user) -> Tuple[bool, str]:
        if not user or not user.is_authenticated:
            return False, "Authentication required"
        if SessionPolicy.is_system_admin(user) or getattr(user, 'role', None) in ORGANIZER_ROLES:
            return True, ""
        return False, "Only organizers can create sessions"

    @staticmethod
    def can_manage_session(user, session: SessionState) -> Tuple[bool, str]:
        """
        Organizer of the session or a system admin.
        ``user=None`` means the system itself (lifecycle sweeps) and is allowed.
        """
        if user is None:
            return True, ""
        if SessionPolicy.is_system_admin(user):
            return True, ""
        if SessionPolicy.is_organizer(user, session):
            return True, ""
        return False, "Only the organizer or an admin can manage this session"
