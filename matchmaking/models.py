# playmatch/matchmaking/models.py
from django.db import models
from django.conf import settings

from .domain import (
    SKILL_LEVELS,
    STATUS_CANCELLED,
    STATUS_CHOICES,
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    Preferences,
    SessionState,
    UnmatchedParticipant,
)


def default_max_groups():
    return settings.MATCHMAKING.get("MAX_GROUPS_DEFAULT", 10)


class MatchmakingSession(models.Model):
    STATUS_DRAFT = STATUS_DRAFT
    STATUS_OPEN = STATUS_OPEN
    STATUS_IN_PROGRESS = STATUS_IN_PROGRESS
    STATUS_COMPLETED = STATUS_COMPLETED
    STATUS_CANCELLED = STATUS_CANCELLED

    STATUS_CHOICES = STATUS_CHOICES

    TYPE_TENNIS = "tennis"
    TYPE_SOCCER = "soccer"
    TYPE_BASKETBALL = "basketball"
    TYPE_VOLLEYBALL = "volleyball"
    TYPE_BADMINTON = "badminton"
    TYPE_GOLF = "golf"
    TYPE_RUNNING = "running"
    TYPE_SWIMMING = "swimming"
    TYPE_CYCLING = "cycling"
    TYPE_OTHER = "other"

    TYPE_CHOICES = [
        (TYPE_TENNIS, "Tennis"),
        (TYPE_SOCCER, "Soccer"),
        (TYPE_BASKETBALL, "Basketball"),
        (TYPE_VOLLEYBALL, "Volleyball"),
        (TYPE_BADMINTON, "Badminton"),
        (TYPE_GOLF, "Golf"),
        (TYPE_RUNNING, "Running"),
        (TYPE_SWIMMING, "Swimming"),
        (TYPE_CYCLING, "Cycling"),
        (TYPE_OTHER, "Other"),
    ]

    SKILL_CHOICES = [(level, level.title()) for level in SKILL_LEVELS]

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='organized_sessions'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    activity_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=TYPE_OTHER)
    skill_level = models.CharField(max_length=20, choices=SKILL_CHOICES, blank=True, null=True)
    location_ref = models.CharField(max_length=255, blank=True, default="")
    virtual_url = models.URLField(blank=True, null=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()

    min_players = models.PositiveSmallIntegerField(default=2)
    max_players = models.PositiveSmallIntegerField(default=4)
    max_groups = models.PositiveIntegerField(default=default_max_groups)

    # User ids in join order
    participants = models.JSONField(default=list, blank=True)
    preferences = models.JSONField(default=dict, blank=True)
    auto_match = models.BooleanField(default=True)

    # Published result; write-once until an explicit (audited) clear
    matched_groups = models.JSONField(default=list, blank=True)
    unmatched = models.JSONField(default=list, blank=True)
    matched_at = models.DateTimeField(blank=True, null=True)
    match_claim = models.CharField(max_length=64, blank=True, default="")

    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    # Bumped on every atomic update; compare-and-swap guard
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(
                fields=['status', 'start_time'],
                name='session_status_start_idx',
            ),
            models.Index(
                fields=['organizer', 'start_time'],
                name='session_org_start_idx',
            ),
        ]

    def __str__(self):
        return self.title

    def to_state(self) -> SessionState:
        return SessionState(
            id=self.pk,
            title=self.title,
            organizer_id=self.organizer_id,
            min_players=self.min_players,
            max_players=self.max_players,
            status=self.status,
            description=self.description,
            activity_type=self.activity_type,
            skill_level=self.skill_level,
            location_ref=self.location_ref,
            virtual_url=self.virtual_url,
            start_time=self.start_time,
            end_time=self.end_time,
            max_groups=self.max_groups,
            participants=list(self.participants or []),
            preferences=Preferences.from_dict(self.preferences),
            auto_match=self.auto_match,
            matched_groups=[list(g) for g in self.matched_groups or []],
            unmatched=[UnmatchedParticipant.from_dict(u) for u in self.unmatched or []],
            matched_at=self.matched_at,
            match_claim=self.match_claim,
            version=self.version,
        )

    @staticmethod
    def fields_from_state(state: SessionState) -> dict:
        """Column values for ``state`` (everything but id and timestamps)."""
        return {
            "title": state.title,
            "organizer_id": state.organizer_id,
            "min_players": state.min_players,
            "max_players": state.max_players,
            "status": state.status,
            "description": state.description,
            "activity_type": state.activity_type,
            "skill_level": state.skill_level,
            "location_ref": state.location_ref,
            "virtual_url": state.virtual_url,
            "start_time": state.start_time,
            "end_time": state.end_time,
            "max_groups": state.max_groups,
            "participants": list(state.participants),
            "preferences": state.preferences.to_dict(),
            "auto_match": state.auto_match,
            "matched_groups": [list(g) for g in state.matched_groups],
            "unmatched": [u.to_dict() for u in state.unmatched],
            "matched_at": state.matched_at,
            "match_claim": state.match_claim,
            "version": state.version,
        }
