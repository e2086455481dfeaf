# playmatch/matchmaking/directory.py
"""
Participant attribute lookup.

The engine never reads user rows directly; it asks a ParticipantDirectory for
the resolved Participant view of each enrolled id.
"""
import logging
from typing import Dict, Iterable, List

from django.contrib.auth import get_user_model

from .domain import Participant, parse_slots, skill_rank
from .exceptions import ParticipantNotFound

logger = logging.getLogger('playmatch.matchmaking')


class ParticipantDirectory:
    def get_attributes(self, user_id: int) -> Participant:
        return self.get_many([user_id])[0]

    def get_many(self, user_ids: Iterable[int]) -> List[Participant]:
        """Participants for ``user_ids``, in the order given. Raises ParticipantNotFound."""
        raise NotImplementedError


def participant_from_user(user) -> Participant:
    try:
        rank = skill_rank(user.skill_level)
    except ValueError:
        logger.warning(f"User {user.pk} has unknown skill level {user.skill_level!r}; treating as unset")
        rank = None

    try:
        slots = parse_slots(user.availability)
    except (ValueError, TypeError) as e:
        logger.warning(f"User {user.pk} has invalid availability data: {e}")
        slots = frozenset()

    return Participant(
        id=user.pk,
        skill_level=rank,
        age=user.age,
        gender=user.gender or None,
        availability_slots=slots,
    )


class UserParticipantDirectory(ParticipantDirectory):
    """Reads matchmaking attributes from the users.User profile."""

    def get_many(self, user_ids):
        user_ids = list(user_ids)
        users: Dict[int, object] = get_user_model().objects.in_bulk(user_ids)
        missing = [uid for uid in user_ids if uid not in users]
        if missing:
            raise ParticipantNotFound(f"Unknown participant(s): {missing}", user_ids=missing)
        return [participant_from_user(users[uid]) for uid in user_ids]
