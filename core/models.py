#  playmatch/core/models.py
from django.db import models
from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType


class DomainActivity(models.Model):
    """
    Immutable ledger of all business-significant actions in the system.
    Source of truth for audits and for the external notification system.
    """
    VISIBILITY_PUBLIC = "public"
    VISIBILITY_PARTICIPANTS = "participants"
    VISIBILITY_PRIVATE = "private"

    VISIBILITY_CHOICES = [
        (VISIBILITY_PUBLIC, "Public"),
        (VISIBILITY_PARTICIPANTS, "Participants-Only"),
        (VISIBILITY_PRIVATE, "Private"),
    ]

    # Who did it? Empty for system actions (lifecycle sweeps, automatic matching)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )

    # What happened? (e.g., 'session.matched')
    verb = models.CharField(max_length=64, db_index=True)

    # To what? (Generic Foreign Key)
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey("content_type", "object_id")

    visibility = models.CharField(
        max_length=16,
        choices=VISIBILITY_CHOICES,
        default=VISIBILITY_PARTICIPANTS,
        db_index=True,
    )

    # Snapshot of the state at logging time (e.g. the published groups)
    metadata = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name_plural = "Domain Activities"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["content_type", "object_id", "-timestamp"], name="activity_target_idx"),
            models.Index(fields=["actor", "-timestamp"], name="activity_actor_idx"),
        ]

    def __str__(self):
        return f"{self.actor} - {self.verb} - {self.timestamp}"
