# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = (
        ('player', 'Player'),
        ('organizer', 'Organizer'),
        ('admin', 'Admin'),
    )

    SKILL_BEGINNER = 'beginner'
    SKILL_INTERMEDIATE = 'intermediate'
    SKILL_ADVANCED = 'advanced'
    SKILL_EXPERT = 'expert'

    SKILL_CHOICES = [
        (SKILL_BEGINNER, 'Beginner'),
        (SKILL_INTERMEDIATE, 'Intermediate'),
        (SKILL_ADVANCED, 'Advanced'),
        (SKILL_EXPERT, 'Expert'),
    ]

    GENDER_MALE = 'male'
    GENDER_FEMALE = 'female'
    GENDER_OTHER = 'other'

    GENDER_CHOICES = [
        (GENDER_MALE, 'Male'),
        (GENDER_FEMALE, 'Female'),
        (GENDER_OTHER, 'Other'),
    ]

    role = models.CharField(
        max_length=30,
        choices=ROLE_CHOICES,
        default='player'
    )

    phone = models.CharField(max_length=20, blank=True, null=True)
    bio = models.TextField(blank=True, null=True)

    # Matchmaking profile (read by matchmaking.directory)
    skill_level = models.CharField(max_length=20, choices=SKILL_CHOICES, blank=True, null=True)
    age = models.PositiveSmallIntegerField(blank=True, null=True)
    gender = models.CharField(max_length=16, choices=GENDER_CHOICES, blank=True, null=True)

    # [{"day": "monday", "time_slot": "evening"}, ...]
    availability = models.JSONField(default=list, blank=True, help_text="Weekly availability slots")

    def __str__(self):
        return self.username
