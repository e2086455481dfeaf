import django.db.models.deletion
import matchmaking.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="MatchmakingSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "activity_type",
                    models.CharField(
                        choices=[
                            ("tennis", "Tennis"),
                            ("soccer", "Soccer"),
                            ("basketball", "Basketball"),
                            ("volleyball", "Volleyball"),
                            ("badminton", "Badminton"),
                            ("golf", "Golf"),
                            ("running", "Running"),
                            ("swimming", "Swimming"),
                            ("cycling", "Cycling"),
                            ("other", "Other"),
                        ],
                        default="other",
                        max_length=32,
                    ),
                ),
                (
                    "skill_level",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("beginner", "Beginner"),
                            ("intermediate", "Intermediate"),
                            ("advanced", "Advanced"),
                            ("expert", "Expert"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("location_ref", models.CharField(blank=True, default="", max_length=255)),
                ("virtual_url", models.URLField(blank=True, null=True)),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("min_players", models.PositiveSmallIntegerField(default=2)),
                ("max_players", models.PositiveSmallIntegerField(default=4)),
                ("max_groups", models.PositiveIntegerField(default=matchmaking.models.default_max_groups)),
                ("participants", models.JSONField(blank=True, default=list)),
                ("preferences", models.JSONField(blank=True, default=dict)),
                ("auto_match", models.BooleanField(default=True)),
                ("matched_groups", models.JSONField(blank=True, default=list)),
                ("unmatched", models.JSONField(blank=True, default=list)),
                ("matched_at", models.DateTimeField(blank=True, null=True)),
                ("match_claim", models.CharField(blank=True, default="", max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("open", "Open"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="draft",
                        max_length=32,
                    ),
                ),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organized_sessions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["status", "start_time"], name="session_status_start_idx"),
                    models.Index(fields=["organizer", "start_time"], name="session_org_start_idx"),
                ],
            },
        ),
    ]
