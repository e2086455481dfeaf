# playmatch/matchmaking/domain.py
"""
Plain data types shared by the matchmaking engine.

Nothing in here touches the ORM: the formation engine, the enrollment gate and
the publisher all work on these snapshots, and repositories translate them to
and from storage.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

# Session lifecycle
STATUS_DRAFT = "draft"
STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

STATUS_CHOICES = [
    (STATUS_DRAFT, "Draft"),
    (STATUS_OPEN, "Open"),
    (STATUS_IN_PROGRESS, "In Progress"),
    (STATUS_COMPLETED, "Completed"),
    (STATUS_CANCELLED, "Cancelled"),
]

# Ordered from lowest to highest; the index is the numeric rank
SKILL_LEVELS = ["beginner", "intermediate", "advanced", "expert"]
SKILL_RANGE = len(SKILL_LEVELS) - 1

DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# name -> (start hour, end hour)
TIME_SLOTS = {
    "morning": (6, 12),
    "afternoon": (12, 17),
    "evening": (17, 21),
    "night": (21, 24),
}

GENDER_ANY = "any"
GENDER_MALE = "male"
GENDER_FEMALE = "female"
GENDER_SAME = "same"
GENDER_MODES = (GENDER_ANY, GENDER_MALE, GENDER_FEMALE, GENDER_SAME)

REASON_INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
REASON_UNDERSIZED_GROUP = "undersized_group"

WEIGHT_TOLERANCE = 1e-9

Slot = Tuple[str, str]


def skill_rank(level: Optional[str]) -> Optional[int]:
    """Numeric rank of a skill level name, None when unknown."""
    if not level:
        return None
    try:
        return SKILL_LEVELS.index(level)
    except ValueError:
        raise ValueError(f"Unknown skill level: {level}")


def parse_slots(items: Optional[Iterable]) -> FrozenSet[Slot]:
    """
    Parse availability slots.

    Accepts dicts ({"day": "monday", "time_slot": "evening"}, the camelCase
    "timeSlot" key is tolerated) or (day, time_slot) pairs.
    """
    slots = set()
    for item in items or []:
        if isinstance(item, dict):
            day = item.get("day")
            time_slot = item.get("time_slot", item.get("timeSlot"))
        else:
            day, time_slot = item
        day = str(day or "").strip().lower()
        time_slot = str(time_slot or "").strip().lower()
        if day not in DAYS:
            raise ValueError(f"Unknown day: {day!r}")
        if time_slot not in TIME_SLOTS:
            raise ValueError(f"Unknown time slot: {time_slot!r}")
        slots.add((day, time_slot))
    return frozenset(slots)


def slots_to_json(slots: Iterable[Slot]) -> List[Dict[str, str]]:
    slot_order = list(TIME_SLOTS)
    ordered = sorted(slots, key=lambda s: (DAYS.index(s[0]), slot_order.index(s[1])))
    return [{"day": day, "time_slot": time_slot} for day, time_slot in ordered]


@dataclass(frozen=True)
class Participant:
    """Resolved view of an enrolled user; never stored on the session."""
    id: int
    skill_level: Optional[int] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    availability_slots: FrozenSet[Slot] = frozenset()


@dataclass(frozen=True)
class UnmatchedParticipant:
    participant_id: int
    reason: str

    def to_dict(self) -> Dict:
        return {"participant_id": self.participant_id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict) -> "UnmatchedParticipant":
        return cls(participant_id=data["participant_id"], reason=data["reason"])


@dataclass(frozen=True)
class AgeRange:
    min_age: Optional[int] = None
    max_age: Optional[int] = None

    def __post_init__(self):
        if self.min_age is not None and self.min_age < 0:
            raise ValueError("Minimum age must be 0 or greater")
        if self.max_age is not None and self.max_age < 0:
            raise ValueError("Maximum age must be 0 or greater")
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("Minimum age cannot exceed maximum age")

    def years_outside(self, age: int) -> int:
        """0 when the age is inside the range, otherwise the distance to it."""
        if self.min_age is not None and age < self.min_age:
            return self.min_age - age
        if self.max_age is not None and age > self.max_age:
            return age - self.max_age
        return 0


@dataclass(frozen=True)
class GenderPreference:
    mode: str = GENDER_ANY
    # Only exclusive preferences are enforced, as a hard constraint
    exclusive: bool = False

    def __post_init__(self):
        if self.mode not in GENDER_MODES:
            raise ValueError(f"Unknown gender preference: {self.mode!r}")


@dataclass(frozen=True)
class AvailabilityRequirement:
    # Empty means "whatever the participants offer"
    slots: FrozenSet[Slot] = frozenset()
    mandatory: bool = False


@dataclass(frozen=True)
class ScoreWeights:
    skill: float = 0.5
    age: float = 0.25
    availability: float = 0.25

    def __post_init__(self):
        for name in ("skill", "age", "availability"):
            if getattr(self, name) < 0:
                raise ValueError(f"Weight '{name}' must not be negative")
        total = self.skill + self.age + self.availability
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Score weights must sum to 1.0 (got {total})")

    @classmethod
    def from_dict(cls, data: Dict) -> "ScoreWeights":
        unknown = set(data) - {"skill", "age", "availability"}
        if unknown:
            raise ValueError(f"Unknown weight(s): {', '.join(sorted(unknown))}")
        return cls(
            skill=float(data.get("skill", 0.0)),
            age=float(data.get("age", 0.0)),
            availability=float(data.get("availability", 0.0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"skill": self.skill, "age": self.age, "availability": self.availability}


@dataclass(frozen=True)
class Preferences:
    age_range: Optional[AgeRange] = None
    gender_preference: Optional[GenderPreference] = None
    availability_requirement: Optional[AvailabilityRequirement] = None
    # Overrides the project-wide default weights for this session
    weights: Optional[ScoreWeights] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Preferences":
        """
        Build preferences from stored/submitted JSON.

        Raises ValueError on anything outside the closed structure. Besides the
        canonical keys produced by to_dict(), the shorthand forms
        ``{"gender": "female"}`` and ``{"availability": [...]}`` are accepted;
        both produce non-exclusive / non-mandatory preferences.
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("Preferences must be an object")

        known = {"age_range", "gender_preference", "gender", "availability_requirement", "availability", "weights"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown preference(s): {', '.join(sorted(unknown))}")

        age_range = None
        raw_age = data.get("age_range")
        if raw_age:
            age_range = AgeRange(min_age=raw_age.get("min"), max_age=raw_age.get("max"))

        gender_preference = None
        raw_gender = data.get("gender_preference", data.get("gender"))
        if isinstance(raw_gender, str):
            gender_preference = GenderPreference(mode=raw_gender)
        elif raw_gender:
            gender_preference = GenderPreference(
                mode=raw_gender.get("mode", GENDER_ANY),
                exclusive=bool(raw_gender.get("exclusive", False)),
            )

        availability = None
        raw_availability = data.get("availability_requirement", data.get("availability"))
        if isinstance(raw_availability, (list, tuple)):
            availability = AvailabilityRequirement(slots=parse_slots(raw_availability))
        elif raw_availability:
            availability = AvailabilityRequirement(
                slots=parse_slots(raw_availability.get("slots")),
                mandatory=bool(raw_availability.get("mandatory", False)),
            )

        weights = None
        if data.get("weights"):
            weights = ScoreWeights.from_dict(data["weights"])

        return cls(
            age_range=age_range,
            gender_preference=gender_preference,
            availability_requirement=availability,
            weights=weights,
        )

    def to_dict(self) -> Dict:
        data = {}
        if self.age_range is not None:
            data["age_range"] = {"min": self.age_range.min_age, "max": self.age_range.max_age}
        if self.gender_preference is not None:
            data["gender_preference"] = {
                "mode": self.gender_preference.mode,
                "exclusive": self.gender_preference.exclusive,
            }
        if self.availability_requirement is not None:
            data["availability_requirement"] = {
                "slots": slots_to_json(self.availability_requirement.slots),
                "mandatory": self.availability_requirement.mandatory,
            }
        if self.weights is not None:
            data["weights"] = self.weights.to_dict()
        return data


@dataclass
class SessionState:
    """Snapshot of a matchmaking session as seen inside one critical section."""
    id: Optional[int]
    title: str
    organizer_id: int
    min_players: int
    max_players: int
    status: str = STATUS_DRAFT
    description: str = ""
    activity_type: str = "other"
    skill_level: Optional[str] = None
    location_ref: str = ""
    virtual_url: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_groups: int = 10
    participants: List[int] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    auto_match: bool = True
    matched_groups: List[List[int]] = field(default_factory=list)
    unmatched: List[UnmatchedParticipant] = field(default_factory=list)
    matched_at: Optional[datetime] = None
    # Token of an in-flight automatic match run, "" when none
    match_claim: str = ""
    version: int = 0

    @property
    def capacity_ceiling(self) -> int:
        return self.max_players * self.max_groups

    @property
    def is_matched(self) -> bool:
        return bool(self.matched_groups)

    def copy(self) -> "SessionState":
        return copy.deepcopy(self)
