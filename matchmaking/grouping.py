# playmatch/matchmaking/grouping.py
"""
Greedy compatibility clustering.

Exact optimal partitioning is NP-hard; sessions are small, so a deterministic
near-linear greedy pass is used instead:

1. score every pair once (ConstraintEvaluator);
2. walk participants in join order; each joins the open group (below
   max_players) with the best average score against its members, skipping
   groups holding a hard conflict, or opens a new group;
3. repeatedly merge the smallest group below min_players into the smallest
   group that can take it without a hard conflict or exceeding max_players;
4. groups still below min_players are reported as unmatched participants.

Ties within EPSILON go to the group whose earliest member joined first.
Participants are referred to by their join position internally, so the
earliest member of a group is simply min(group).
"""
import logging
from typing import List, Optional, Sequence, Tuple

from django.conf import settings

from .domain import (
    REASON_INSUFFICIENT_PARTICIPANTS,
    REASON_UNDERSIZED_GROUP,
    Participant,
    Preferences,
    ScoreWeights,
    UnmatchedParticipant,
)
from .scoring import EPSILON, NEG_INF, ConstraintEvaluator

logger = logging.getLogger('playmatch.matchmaking')

Group = List[int]


def default_join_threshold() -> float:
    return float(getattr(settings, "MATCHMAKING", {}).get("JOIN_THRESHOLD", 0.0))


class GroupFormationEngine:
    def __init__(self, preferences: Preferences, weights: Optional[ScoreWeights] = None,
                 baseline_skill: Optional[int] = None, join_threshold: Optional[float] = None):
        self.evaluator = ConstraintEvaluator(preferences, weights=weights, baseline_skill=baseline_skill)
        # A best score below this opens a new group instead (0.0 = never)
        self.join_threshold = default_join_threshold() if join_threshold is None else join_threshold

    def form_groups(self, participants: Sequence[Participant], min_players: int,
                    max_players: int) -> Tuple[List[Group], List[UnmatchedParticipant]]:
        """
        Partition ``participants`` (in join order) into groups of
        ``min_players``..``max_players`` ids.

        Returns (groups, unmatched). Groups are ordered by their earliest
        member and list members in join order. Pure: no I/O, no state kept
        between calls.
        """
        if min_players < 1 or max_players < min_players:
            raise ValueError(f"Invalid group size range [{min_players}, {max_players}]")

        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise ValueError("Participant ids must be unique")

        if not participants:
            return [], []

        if len(participants) < min_players:
            return [], [UnmatchedParticipant(pid, REASON_INSUFFICIENT_PARTICIPANTS) for pid in ids]

        scores = self._score_matrix(participants)
        groups = self._assign(len(participants), scores, max_players)
        groups = self._merge_undersized(groups, scores, min_players, max_players)

        formed = []
        unmatched = []
        for group in sorted(groups, key=min):
            members = sorted(group)
            if len(members) < min_players:
                unmatched.extend(UnmatchedParticipant(ids[i], REASON_UNDERSIZED_GROUP) for i in members)
            else:
                formed.append([ids[i] for i in members])

        position = {pid: i for i, pid in enumerate(ids)}
        unmatched.sort(key=lambda u: position[u.participant_id])

        logger.debug(
            f"Formed {len(formed)} group(s) from {len(ids)} participant(s), "
            f"{len(unmatched)} unmatched"
        )
        return formed, unmatched

    # ----- steps -----

    def _score_matrix(self, participants: Sequence[Participant]) -> List[List[float]]:
        n = len(participants)
        scores = [[0.0] * n for _ in range(n)]
        for i in range(n):
            for j in range(i + 1, n):
                value = self.evaluator.score(participants[i], participants[j])
                scores[i][j] = value
                scores[j][i] = value
        return scores

    def _assign(self, n: int, scores: List[List[float]], max_players: int) -> List[Group]:
        # Groups are created in join order of their seed, so iterating in
        # creation order already applies the earliest-member tie-break.
        groups: List[Group] = []
        for i in range(n):
            best_group = None
            best_score = NEG_INF
            for group in groups:
                if len(group) >= max_players:
                    continue
                affinity = self._affinity([i], group, scores)
                if affinity == NEG_INF:
                    continue
                if best_group is None or affinity > best_score + EPSILON:
                    best_group, best_score = group, affinity

            if best_group is None or best_score < self.join_threshold - EPSILON:
                groups.append([i])
            else:
                best_group.append(i)
        return groups

    def _merge_undersized(self, groups: List[Group], scores: List[List[float]],
                          min_players: int, max_players: int) -> List[Group]:
        while True:
            undersized = sorted(
                (g for g in groups if len(g) < min_players),
                key=lambda g: (len(g), min(g)),
            )
            merged = False
            for small in undersized:
                target = self._merge_target(small, groups, scores, max_players)
                if target is None:
                    continue
                target.extend(small)
                target.sort()
                groups = [g for g in groups if g is not small]
                merged = True
                break
            if not merged:
                return groups

    def _merge_target(self, small: Group, groups: List[Group], scores: List[List[float]],
                      max_players: int) -> Optional[Group]:
        """Smallest compatible group able to absorb ``small``; ties by score, then join order."""
        best = None
        best_affinity = NEG_INF
        for group in sorted(groups, key=lambda g: (len(g), min(g))):
            if group is small or len(group) + len(small) > max_players:
                continue
            if best is not None and len(group) > len(best):
                break
            affinity = self._affinity(small, group, scores)
            if affinity == NEG_INF:
                continue
            if best is None or affinity > best_affinity + EPSILON:
                best, best_affinity = group, affinity
        return best

    @staticmethod
    def _affinity(members: Group, group: Group, scores: List[List[float]]) -> float:
        """Average pairwise score across the two sets, -inf on any hard conflict."""
        total = 0.0
        for i in members:
            for j in group:
                value = scores[i][j]
                if value == NEG_INF:
                    return NEG_INF
                total += value
        return total / (len(members) * len(group))


def form_groups(participants: Sequence[Participant], preferences: Preferences, min_players: int,
                max_players: int, weights: Optional[ScoreWeights] = None,
                baseline_skill: Optional[int] = None,
                join_threshold: Optional[float] = None) -> Tuple[List[Group], List[UnmatchedParticipant]]:
    engine = GroupFormationEngine(
        preferences,
        weights=weights,
        baseline_skill=baseline_skill,
        join_threshold=join_threshold,
    )
    return engine.form_groups(participants, min_players, max_players)
