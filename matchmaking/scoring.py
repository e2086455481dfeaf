# playmatch/matchmaking/scoring.py
"""
Pairwise compatibility between participants.

A score is a float in [0, 1], or -inf when a hard constraint is violated:

* exclusive gender preference not met by either participant
  ("same" forbids mixing genders, "male"/"female" require that gender);
* mandatory availability with no common slot.

Soft factors, combined with ScoreWeights:

* skill:        1 - |rank_a - rank_b| / SKILL_RANGE
* age:          1 inside the session age range, exp(-years_outside / 5) outside;
                a pair scores the lower of its two fits
* availability: shared slots / all slots offered by the pair (Jaccard)
"""
import math
from typing import Optional

from django.conf import settings

from .domain import (
    GENDER_ANY,
    GENDER_SAME,
    SKILL_RANGE,
    Participant,
    Preferences,
    ScoreWeights,
)

NEG_INF = float("-inf")
EPSILON = 1e-9

AGE_DECAY_YEARS = 5.0
# Fit used when the directory has no age for a participant
UNKNOWN_AGE_FIT = 0.5
# Skill score when neither the participant nor the session has a level
UNKNOWN_SKILL_SCORE = 0.5


def default_weights() -> ScoreWeights:
    config = getattr(settings, "MATCHMAKING", {})
    raw = config.get("SCORE_WEIGHTS")
    if not raw:
        return ScoreWeights()
    return ScoreWeights.from_dict(raw)


class ConstraintEvaluator:
    """Scores participant pairs for one session's preferences."""

    def __init__(self, preferences: Preferences, weights: Optional[ScoreWeights] = None,
                 baseline_skill: Optional[int] = None):
        self.preferences = preferences
        self.weights = weights or preferences.weights or default_weights()
        # Session-wide skill level, used for participants without one
        self.baseline_skill = baseline_skill

    def score(self, a: Participant, b: Participant) -> float:
        if self.violates_hard_constraint(a, b):
            return NEG_INF
        w = self.weights
        return (
            w.skill * self.skill_score(a, b)
            + w.age * self.age_score(a, b)
            + w.availability * self.availability_score(a, b)
        )

    # ----- hard constraints -----

    def violates_hard_constraint(self, a: Participant, b: Participant) -> bool:
        return self.gender_conflict(a, b) or self.availability_conflict(a, b)

    def gender_conflict(self, a: Participant, b: Participant) -> bool:
        pref = self.preferences.gender_preference
        if pref is None or not pref.exclusive or pref.mode == GENDER_ANY:
            return False
        # Unknown gender cannot satisfy an exclusive preference
        if pref.mode == GENDER_SAME:
            return a.gender is None or b.gender is None or a.gender != b.gender
        return a.gender != pref.mode or b.gender != pref.mode

    def availability_conflict(self, a: Participant, b: Participant) -> bool:
        requirement = self.preferences.availability_requirement
        if requirement is None or not requirement.mandatory:
            return False
        return not (self._slots(a) & self._slots(b))

    # ----- soft constraints -----

    def skill_score(self, a: Participant, b: Participant) -> float:
        rank_a = a.skill_level if a.skill_level is not None else self.baseline_skill
        rank_b = b.skill_level if b.skill_level is not None else self.baseline_skill
        if rank_a is None or rank_b is None:
            return UNKNOWN_SKILL_SCORE
        return 1.0 - abs(rank_a - rank_b) / SKILL_RANGE

    def age_score(self, a: Participant, b: Participant) -> float:
        if self.preferences.age_range is None:
            return 1.0
        return min(self.age_fit(a), self.age_fit(b))

    def age_fit(self, participant: Participant) -> float:
        if participant.age is None:
            return UNKNOWN_AGE_FIT
        outside = self.preferences.age_range.years_outside(participant.age)
        if outside == 0:
            return 1.0
        return math.exp(-outside / AGE_DECAY_YEARS)

    def availability_score(self, a: Participant, b: Participant) -> float:
        slots_a, slots_b = self._slots(a), self._slots(b)
        offered = slots_a | slots_b
        if not offered:
            return 1.0
        return len(slots_a & slots_b) / len(offered)

    def _slots(self, participant: Participant):
        requirement = self.preferences.availability_requirement
        if requirement is not None and requirement.slots:
            return participant.availability_slots & requirement.slots
        return participant.availability_slots


def score(a: Participant, b: Participant, preferences: Preferences,
          weights: Optional[ScoreWeights] = None) -> float:
    """Compatibility of a single pair; see ConstraintEvaluator."""
    return ConstraintEvaluator(preferences, weights=weights).score(a, b)
