# matchmaking/tests/test_scoring.py
import math

from django.test import SimpleTestCase, override_settings

from matchmaking.domain import (
    AgeRange,
    AvailabilityRequirement,
    GenderPreference,
    Preferences,
    ScoreWeights,
    parse_slots,
)
from matchmaking.scoring import NEG_INF, ConstraintEvaluator, default_weights, score
from matchmaking.tests.factories import make_participant


class PairScoreTest(SimpleTestCase):
    def test_identical_participants_score_one(self):
        a = make_participant(1, skill="intermediate")
        b = make_participant(2, skill="intermediate")
        self.assertAlmostEqual(score(a, b, Preferences()), 1.0)

    def test_skill_distance_scales_linearly(self):
        evaluator = ConstraintEvaluator(Preferences())
        beginner = make_participant(1, skill="beginner")
        self.assertAlmostEqual(evaluator.skill_score(beginner, make_participant(2, skill="advanced")), 1 / 3)
        self.assertAlmostEqual(evaluator.skill_score(beginner, make_participant(3, skill="expert")), 0.0)
        # Skill 0, age and availability 1.0 each
        self.assertAlmostEqual(evaluator.score(beginner, make_participant(4, skill="expert")), 0.5)

    def test_unknown_skill_uses_session_baseline(self):
        unknown = make_participant(1)
        advanced = make_participant(2, skill="advanced")
        with_baseline = ConstraintEvaluator(Preferences(), baseline_skill=2)
        self.assertAlmostEqual(with_baseline.skill_score(unknown, advanced), 1.0)

        without_baseline = ConstraintEvaluator(Preferences())
        self.assertAlmostEqual(without_baseline.skill_score(unknown, advanced), 0.5)

    def test_session_weights_override_defaults(self):
        prefs = Preferences(weights=ScoreWeights(skill=1.0, age=0.0, availability=0.0))
        a = make_participant(1, skill="beginner", slots=[("monday", "evening")])
        b = make_participant(2, skill="beginner", slots=[("friday", "morning")])
        self.assertAlmostEqual(score(a, b, prefs), 1.0)
        self.assertAlmostEqual(score(a, b, Preferences()), 0.75)

    @override_settings(MATCHMAKING={"SCORE_WEIGHTS": {"skill": 0.2, "age": 0.4, "availability": 0.4}})
    def test_default_weights_come_from_settings(self):
        self.assertEqual(default_weights(), ScoreWeights(skill=0.2, age=0.4, availability=0.4))


class HardConstraintTest(SimpleTestCase):
    def test_exclusive_gender_mismatch_is_forbidden(self):
        prefs = Preferences(gender_preference=GenderPreference(mode="female", exclusive=True))
        female = make_participant(1, gender="female")
        self.assertEqual(score(female, make_participant(2, gender="male"), prefs), NEG_INF)
        self.assertGreater(score(female, make_participant(3, gender="female"), prefs), 0)

    def test_non_exclusive_gender_preference_is_ignored(self):
        prefs = Preferences(gender_preference=GenderPreference(mode="female"))
        self.assertAlmostEqual(
            score(
                make_participant(1, skill="intermediate", gender="female"),
                make_participant(2, skill="intermediate", gender="male"),
                prefs,
            ),
            1.0,
        )

    def test_same_gender_mode(self):
        prefs = Preferences(gender_preference=GenderPreference(mode="same", exclusive=True))
        self.assertGreater(score(make_participant(1, gender="male"), make_participant(2, gender="male"), prefs), 0)
        self.assertEqual(score(make_participant(1, gender="male"), make_participant(2, gender="female"), prefs), NEG_INF)
        self.assertEqual(score(make_participant(1, gender="male"), make_participant(2), prefs), NEG_INF)

    def test_mandatory_availability_without_overlap_is_forbidden(self):
        prefs = Preferences(availability_requirement=AvailabilityRequirement(mandatory=True))
        a = make_participant(1, slots=[("monday", "evening")])
        self.assertEqual(score(a, make_participant(2, slots=[("tuesday", "evening")]), prefs), NEG_INF)
        self.assertGreater(score(a, make_participant(3, slots=[("monday", "evening")]), prefs), 0)

    def test_mandatory_availability_only_counts_session_slots(self):
        prefs = Preferences(availability_requirement=AvailabilityRequirement(
            slots=parse_slots([("saturday", "morning")]),
            mandatory=True,
        ))
        a = make_participant(1, slots=[("monday", "evening"), ("saturday", "morning")])
        b = make_participant(2, slots=[("monday", "evening")])
        self.assertEqual(score(a, b, prefs), NEG_INF)


class SoftConstraintTest(SimpleTestCase):
    def test_availability_overlap_fraction(self):
        evaluator = ConstraintEvaluator(Preferences())
        a = make_participant(1, slots=[("monday", "evening"), ("tuesday", "evening")])
        b = make_participant(2, slots=[("monday", "evening")])
        self.assertAlmostEqual(evaluator.availability_score(a, b), 0.5)
        self.assertAlmostEqual(evaluator.availability_score(make_participant(3), make_participant(4)), 1.0)

    def test_age_fit(self):
        evaluator = ConstraintEvaluator(Preferences(age_range=AgeRange(min_age=20, max_age=30)))
        inside = make_participant(1, age=25)
        self.assertAlmostEqual(evaluator.age_score(inside, make_participant(2, age=30)), 1.0)
        self.assertAlmostEqual(evaluator.age_score(inside, make_participant(3, age=35)), math.exp(-1))
        self.assertAlmostEqual(evaluator.age_score(inside, make_participant(4)), 0.5)

    def test_age_ignored_without_range(self):
        evaluator = ConstraintEvaluator(Preferences())
        self.assertAlmostEqual(evaluator.age_score(make_participant(1, age=18), make_participant(2, age=60)), 1.0)


class PreferencesParsingTest(SimpleTestCase):
    def test_weights_must_sum_to_one(self):
        with self.assertRaises(ValueError):
            ScoreWeights(skill=0.5, age=0.5, availability=0.5)

    def test_unknown_keys_are_rejected(self):
        with self.assertRaises(ValueError):
            Preferences.from_dict({"favourite_colour": "blue"})

    def test_shorthand_forms(self):
        prefs = Preferences.from_dict({
            "gender": "female",
            "availability": [{"day": "Monday", "timeSlot": "evening"}],
            "age_range": {"min": 18, "max": 40},
        })
        self.assertEqual(prefs.gender_preference, GenderPreference(mode="female", exclusive=False))
        self.assertEqual(prefs.availability_requirement.slots, frozenset({("monday", "evening")}))
        self.assertFalse(prefs.availability_requirement.mandatory)
        self.assertEqual(prefs.age_range, AgeRange(18, 40))

    def test_stored_form_reloads(self):
        prefs = Preferences(
            gender_preference=GenderPreference(mode="same", exclusive=True),
            availability_requirement=AvailabilityRequirement(
                slots=parse_slots([("sunday", "morning")]), mandatory=True,
            ),
            weights=ScoreWeights(skill=0.6, age=0.2, availability=0.2),
        )
        self.assertEqual(Preferences.from_dict(prefs.to_dict()), prefs)

    def test_invalid_slot_is_rejected(self):
        with self.assertRaises(ValueError):
            parse_slots([{"day": "someday", "time_slot": "evening"}])
