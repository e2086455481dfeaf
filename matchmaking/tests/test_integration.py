# matchmaking/tests/test_integration.py
from datetime import timedelta
from io import StringIO

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework.exceptions import ValidationError

from core.models import DomainActivity
from core.services import ActivityService
from matchmaking import activity_verbs, datetime_utils
from matchmaking.directory import UserParticipantDirectory
from matchmaking.domain import STATUS_IN_PROGRESS, STATUS_OPEN
from matchmaking.exceptions import ConflictError, ParticipantNotFound, PermissionDenied, SessionNotFound
from matchmaking.models import MatchmakingSession
from matchmaking.repositories import DjangoSessionRepository
from matchmaking.results import EnrollmentStatus, MatchStatus
from matchmaking.selectors import list_sessions
from matchmaking.serializers import SessionSerializer
from matchmaking.services import get_matchmaking_service

User = get_user_model()


class MatchmakingFlowTest(TestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", password="pass123", role="organizer")
        self.players = [
            User.objects.create_user(
                username=f"player{i}",
                password="pass123",
                skill_level="beginner" if i < 4 else "advanced",
                age=20 + i,
                availability=[{"day": "saturday", "time_slot": "morning"}],
            )
            for i in range(8)
        ]
        self.service = get_matchmaking_service()
        self.start = datetime_utils.now() + timedelta(days=2)

    def _create_open_session(self, **overrides):
        data = {
            "title": "Saturday doubles",
            "activity_type": "tennis",
            "start_time": self.start,
            "end_time": self.start + timedelta(hours=2),
            "min_players": 2,
            "max_players": 4,
            "max_groups": 2,
            "status": "open",
        }
        data.update(overrides)
        return self.service.create_session(self.organizer, data)

    def _verbs(self, session_id):
        session = MatchmakingSession.objects.get(pk=session_id)
        return list(ActivityService.history_for(session).values_list("verb", flat=True))

    def test_full_matchmaking_flow(self):
        state = self._create_open_session(status="draft")
        ok, _ = self.service.transition(state.id, STATUS_OPEN, actor=self.organizer)
        self.assertTrue(ok)

        results = [self.service.enroll(state.id, p.pk) for p in self.players[:4]]

        self.assertTrue(results[-1].triggered)
        self.assertEqual(results[-1].match.status, MatchStatus.MATCHED)

        session = MatchmakingSession.objects.get(pk=state.id)
        self.assertEqual(session.matched_groups, [[p.pk for p in self.players[:4]]])
        self.assertEqual(session.match_claim, "")
        self.assertIsNotNone(session.matched_at)
        self.assertEqual(session.version, 6)

        verbs = self._verbs(state.id)
        self.assertEqual(verbs.count(activity_verbs.PARTICIPANT_ENROLLED), 4)
        for verb in (activity_verbs.SESSION_CREATED, activity_verbs.SESSION_OPENED, activity_verbs.SESSION_MATCHED):
            self.assertIn(verb, verbs)
        self.assertTrue(all(activity_verbs.is_valid_verb(v) for v in verbs))

        matched = ActivityService.history_for(session, verb=activity_verbs.SESSION_MATCHED).get()
        self.assertIsNone(matched.actor)
        self.assertEqual(matched.metadata["groups"], session.matched_groups)

        again = self.service.trigger_match(state.id)
        self.assertEqual(again.status, MatchStatus.ALREADY_MATCHED)
        self.assertEqual(again.groups, session.matched_groups)

    def test_capacity_and_duplicates(self):
        state = self._create_open_session(auto_match=False, max_groups=1)
        for player in self.players[:4]:
            self.assertEqual(self.service.enroll(state.id, player.pk).status, EnrollmentStatus.ENROLLED)

        self.assertEqual(
            self.service.enroll(state.id, self.players[0].pk).status,
            EnrollmentStatus.DUPLICATE_ENROLLMENT,
        )
        self.assertEqual(
            self.service.enroll(state.id, self.players[4].pk).status,
            EnrollmentStatus.CAPACITY_EXCEEDED,
        )
        session = MatchmakingSession.objects.get(pk=state.id)
        self.assertEqual(session.participants, [p.pk for p in self.players[:4]])
        self.assertEqual(session.matched_groups, [])

    def test_skill_clusters_across_two_groups(self):
        state = self._create_open_session(auto_match=False)
        for player in self.players:
            self.service.enroll(state.id, player.pk)

        result = self.service.trigger_match(state.id)

        self.assertEqual(result.groups, [
            [p.pk for p in self.players[:4]],
            [p.pk for p in self.players[4:]],
        ])

    def test_clear_match_is_audited(self):
        state = self._create_open_session()
        for player in self.players[:4]:
            self.service.enroll(state.id, player.pk)

        ok, _ = self.service.clear_match(state.id, self.organizer, reason="wrong court")

        self.assertTrue(ok)
        session = MatchmakingSession.objects.get(pk=state.id)
        cleared = ActivityService.history_for(session, verb=activity_verbs.SESSION_MATCH_CLEARED).get()
        self.assertEqual(cleared.actor, self.organizer)
        self.assertEqual(cleared.visibility, DomainActivity.VISIBILITY_PRIVATE)
        self.assertEqual(cleared.metadata["reason"], "wrong court")
        self.assertEqual(len(cleared.metadata["previous_groups"]), 1)

    def test_permissions_and_validation(self):
        with self.assertRaises(PermissionDenied):
            self.service.create_session(self.players[0], {"title": "Mine"})

        with self.assertRaises(ValidationError):
            self._create_open_session(end_time=self.start - timedelta(hours=1))

        state = self._create_open_session()
        with self.assertRaises(PermissionDenied):
            self.service.cancel(state.id, actor=self.players[0])

        with self.assertRaises(SessionNotFound):
            self.service.get_match_state(state.id + 1000)

    def test_update_session(self):
        state = self._create_open_session()

        updated = self.service.update_session(state.id, self.organizer, {
            "title": "Saturday doubles (indoor)",
            "preferences": {"age_range": {"min": 18, "max": 30}},
        })

        self.assertEqual(updated.title, "Saturday doubles (indoor)")
        session = MatchmakingSession.objects.get(pk=state.id)
        self.assertEqual(session.preferences, {"age_range": {"min": 18, "max": 30}})
        self.assertIn(activity_verbs.SESSION_UPDATED, self._verbs(state.id))


@override_settings(MATCHMAKING={**settings.MATCHMAKING, "ASYNC_TRIGGER": True})
class AsyncTriggerTest(TestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", password="pass123", role="organizer")
        self.players = [User.objects.create_user(username=f"p{i}", password="pass123") for i in range(2)]
        self.service = get_matchmaking_service()
        start = datetime_utils.now() + timedelta(days=1)
        self.state = self.service.create_session(self.organizer, {
            "title": "Quick rally",
            "start_time": start,
            "end_time": start + timedelta(hours=1),
            "min_players": 2,
            "max_players": 2,
            "status": "open",
        })

    def test_match_runs_after_commit(self):
        self.service.enroll(self.state.id, self.players[0].pk)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            result = self.service.enroll(self.state.id, self.players[1].pk)
            self.assertEqual(result.match.status, MatchStatus.SCHEDULED)
            self.assertFalse(MatchmakingSession.objects.get(pk=self.state.id).matched_groups)

        self.assertEqual(len(callbacks), 1)
        session = MatchmakingSession.objects.get(pk=self.state.id)
        self.assertEqual(session.matched_groups, [[p.pk for p in self.players]])
        self.assertEqual(session.match_claim, "")


class DjangoRepositoryTest(TestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", password="pass123", role="organizer")
        now = datetime_utils.now()
        self.session = MatchmakingSession.objects.create(
            organizer=self.organizer,
            title="Pickup game",
            start_time=now + timedelta(days=1),
            end_time=now + timedelta(days=1, hours=1),
            status=STATUS_OPEN,
        )
        self.repository = DjangoSessionRepository()

    def test_atomic_update_bumps_version(self):
        def add_participant(state):
            state.participants.append(42)

        state = self.repository.atomic_update(self.session.pk, add_participant)

        self.assertEqual(state.version, 1)
        self.session.refresh_from_db()
        self.assertEqual(self.session.participants, [42])
        self.assertEqual(self.session.version, 1)

    def test_concurrent_write_is_detected(self):
        def interleaved(state):
            # Another writer commits between our read and our write
            MatchmakingSession.objects.filter(pk=self.session.pk).update(version=state.version + 1)
            state.participants.append(42)

        with self.assertRaises(ConflictError):
            self.repository.atomic_update(self.session.pk, interleaved)

        self.session.refresh_from_db()
        self.assertEqual(self.session.participants, [])

    def test_failed_mutator_writes_nothing(self):
        def failing(state):
            state.participants.append(42)
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            self.repository.atomic_update(self.session.pk, failing)

        self.session.refresh_from_db()
        self.assertEqual(self.session.participants, [])
        self.assertEqual(self.session.version, 0)

    def test_missing_session(self):
        with self.assertRaises(SessionNotFound):
            self.repository.atomic_update(self.session.pk + 1, lambda state: None)


class UserDirectoryTest(TestCase):
    def test_resolves_profile_attributes(self):
        user = User.objects.create_user(
            username="ana", password="pass123",
            skill_level="advanced", age=31, gender="female",
            availability=[{"day": "Friday", "time_slot": "evening"}],
        )

        participant = UserParticipantDirectory().get_attributes(user.pk)

        self.assertEqual(participant.skill_level, 2)
        self.assertEqual(participant.age, 31)
        self.assertEqual(participant.gender, "female")
        self.assertEqual(participant.availability_slots, frozenset({("friday", "evening")}))

    def test_invalid_availability_is_ignored(self):
        user = User.objects.create_user(username="bo", password="pass123", availability=[{"day": "someday"}])
        participant = UserParticipantDirectory().get_attributes(user.pk)
        self.assertEqual(participant.availability_slots, frozenset())

    def test_unknown_user(self):
        with self.assertRaises(ParticipantNotFound) as ctx:
            UserParticipantDirectory().get_many([123456])
        self.assertEqual(ctx.exception.user_ids, [123456])


class SessionDiscoveryTest(TestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", password="pass123", role="organizer")
        self.other = User.objects.create_user(username="org2", password="pass123", role="organizer")
        now = datetime_utils.now()

        def session(title, organizer, offset_days, **extra):
            start = now + timedelta(days=offset_days)
            return MatchmakingSession.objects.create(
                organizer=organizer, title=title,
                start_time=start, end_time=start + timedelta(hours=2),
                **extra
            )

        self.tennis = session("Tennis", self.organizer, 3, status=STATUS_OPEN, activity_type="tennis",
                              skill_level="beginner", participants=[7, 8])
        self.soccer = session("Soccer", self.other, 1, status=STATUS_OPEN, activity_type="soccer")
        self.old = session("Old run", self.organizer, -5, status="completed", activity_type="running")
        self.draft = session("Draft golf", self.organizer, 4, activity_type="golf")

    def test_defaults_to_open_sessions_by_start_time(self):
        self.assertEqual(list_sessions(), [self.soccer, self.tennis])

    def test_filters(self):
        self.assertEqual(list_sessions({"activity_type": "tennis"}), [self.tennis])
        self.assertEqual(list_sessions({"skill_level": "beginner"}), [self.tennis])
        self.assertEqual(list_sessions({"organizer": self.other.pk}), [self.soccer])
        self.assertEqual(list_sessions({"participant": 8}), [self.tennis])
        self.assertEqual(list_sessions({"status": "all", "timeframe": "past"}), [self.old])
        self.assertEqual(list_sessions({"status": "all", "search": "golf"}), [self.draft])

    def test_pagination(self):
        self.assertEqual(list_sessions({"status": "all"}, limit=2, offset=1), [self.soccer, self.tennis])

    def test_serialized_output(self):
        data = SessionSerializer(list_sessions({"activity_type": "tennis"}), many=True).data
        self.assertEqual(data[0]["participant_count"], 2)
        self.assertEqual(data[0]["organizer_name"], "org")


class LifecycleCommandTest(TestCase):
    def test_advance_sessions_command(self):
        organizer = User.objects.create_user(username="org", password="pass123", role="organizer")
        now = datetime_utils.now()
        session = MatchmakingSession.objects.create(
            organizer=organizer, title="Morning run",
            start_time=now - timedelta(minutes=5), end_time=now + timedelta(hours=1),
            status=STATUS_OPEN,
        )

        out = StringIO()
        call_command("advance_sessions", stdout=out)

        session.refresh_from_db()
        self.assertEqual(session.status, STATUS_IN_PROGRESS)
        self.assertIn("Advanced 1 session(s)", out.getvalue())
        started = ActivityService.history_for(session, verb=activity_verbs.SESSION_STARTED).get()
        self.assertIsNone(started.actor)
