# playmatch/matchmaking/serializers.py
from rest_framework import serializers

from .domain import STATUS_DRAFT, STATUS_OPEN, Preferences
from .models import MatchmakingSession


class SessionInputSerializer(serializers.Serializer):
    """
    Validates session create/update payloads.

    Bound to a SessionState (``instance``) for updates, so cross-field checks
    fall back to the stored values for fields the payload leaves out.
    """
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    activity_type = serializers.ChoiceField(choices=MatchmakingSession.TYPE_CHOICES, required=False)
    skill_level = serializers.ChoiceField(
        choices=MatchmakingSession.SKILL_CHOICES, required=False, allow_null=True
    )
    location_ref = serializers.CharField(max_length=255, required=False, allow_blank=True)
    virtual_url = serializers.URLField(required=False, allow_null=True)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    min_players = serializers.IntegerField(min_value=2)
    max_players = serializers.IntegerField(min_value=2)
    max_groups = serializers.IntegerField(min_value=1, required=False)
    preferences = serializers.JSONField(required=False)
    auto_match = serializers.BooleanField(required=False)
    status = serializers.ChoiceField(
        choices=[(STATUS_DRAFT, "Draft"), (STATUS_OPEN, "Open")], required=False
    )

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be blank.")
        return value

    def validate_preferences(self, value):
        try:
            return Preferences.from_dict(value)
        except (ValueError, TypeError, AttributeError) as e:
            raise serializers.ValidationError(str(e))

    def validate_status(self, value):
        if self.instance is not None:
            raise serializers.ValidationError("Status changes go through session transitions.")
        return value

    def validate(self, attrs):
        """
        Cross-field validation:
        - end_time must be after start_time
        - max_players must be >= min_players
        - capacity cannot drop below the current participant count
        """
        def current(name):
            if name in attrs:
                return attrs[name]
            if self.instance is not None:
                return getattr(self.instance, name)
            return None

        start = current("start_time")
        end = current("end_time")
        if start and end and end <= start:
            raise serializers.ValidationError(
                {"end_time": "end_time must be after start_time."}
            )

        min_players = current("min_players")
        max_players = current("max_players")
        if min_players is not None and max_players is not None and max_players < min_players:
            raise serializers.ValidationError(
                {"max_players": "max_players must be greater than or equal to min_players."}
            )

        if self.instance is not None:
            enrolled = len(self.instance.participants)
            ceiling = max_players * current("max_groups")
            if ceiling < enrolled:
                raise serializers.ValidationError(
                    {"max_players": f"Capacity {ceiling} is below the {enrolled} enrolled participants."}
                )

        return attrs


class SessionSerializer(serializers.ModelSerializer):
    organizer_name = serializers.CharField(source="organizer.username", read_only=True)
    participant_count = serializers.SerializerMethodField()

    class Meta:
        model = MatchmakingSession
        fields = [
            "id",
            "organizer",
            "organizer_name",
            "title",
            "description",
            "activity_type",
            "skill_level",
            "location_ref",
            "virtual_url",
            "start_time",
            "end_time",
            "min_players",
            "max_players",
            "max_groups",
            "participants",
            "participant_count",
            "preferences",
            "auto_match",
            "matched_groups",
            "unmatched",
            "matched_at",
            "status",
            "created_at",
        ]
        read_only_fields = fields

    def get_participant_count(self, obj) -> int:
        return len(obj.participants or [])
