# matchmaking/tests/test_state_machine.py
from datetime import timedelta

from django.test import SimpleTestCase

from matchmaking import state_machine
from matchmaking.domain import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
)
from matchmaking.tests.factories import START, make_session


class TransitionTest(SimpleTestCase):
    def test_valid_lifecycle(self):
        session = make_session(status=STATUS_DRAFT)
        for target in (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_COMPLETED):
            ok, _ = state_machine.apply_transition(session, target)
            self.assertTrue(ok)
            self.assertEqual(session.status, target)

    def test_skipping_a_state_is_rejected(self):
        session = make_session(status=STATUS_OPEN)
        ok, reason = state_machine.apply_transition(session, STATUS_COMPLETED)
        self.assertFalse(ok)
        self.assertIn("Cannot transition", reason)
        self.assertEqual(session.status, STATUS_OPEN)

    def test_unknown_status_is_rejected(self):
        ok, reason = state_machine.can_transition(make_session(), "archived")
        self.assertFalse(ok)
        self.assertIn("Invalid status", reason)

    def test_same_status_is_a_noop(self):
        session = make_session(status=STATUS_OPEN)
        ok, _ = state_machine.apply_transition(session, STATUS_OPEN)
        self.assertTrue(ok)
        self.assertEqual(session.status, STATUS_OPEN)

    def test_terminal_states(self):
        self.assertTrue(state_machine.is_terminal_status(STATUS_COMPLETED))
        self.assertTrue(state_machine.is_terminal_status(STATUS_CANCELLED))
        self.assertFalse(state_machine.is_terminal_status(STATUS_DRAFT))
        self.assertEqual(state_machine.get_allowed_transitions(make_session(status=STATUS_COMPLETED)), [])

    def test_cancel_drops_pending_claim_but_keeps_published_groups(self):
        session = make_session(status=STATUS_IN_PROGRESS, match_claim="abc", matched_groups=[[1, 2]])
        ok, _ = state_machine.apply_transition(session, STATUS_CANCELLED)
        self.assertTrue(ok)
        self.assertEqual(session.match_claim, "")
        self.assertEqual(session.matched_groups, [[1, 2]])


class DueTransitionTest(SimpleTestCase):
    def test_open_session_starts_at_start_time(self):
        session = make_session(status=STATUS_OPEN)
        self.assertIsNone(state_machine.due_transition(session, START - timedelta(minutes=1)))
        self.assertEqual(state_machine.due_transition(session, START), STATUS_IN_PROGRESS)

    def test_running_session_completes_after_end_time(self):
        session = make_session(status=STATUS_IN_PROGRESS)
        self.assertIsNone(state_machine.due_transition(session, session.end_time))
        self.assertEqual(
            state_machine.due_transition(session, session.end_time + timedelta(seconds=1)),
            STATUS_COMPLETED,
        )

    def test_draft_session_never_advances(self):
        session = make_session(status=STATUS_DRAFT)
        self.assertIsNone(state_machine.due_transition(session, START + timedelta(days=30)))


class ActionGuardTest(SimpleTestCase):
    def test_enroll_only_while_open(self):
        self.assertTrue(state_machine.can_enroll(make_session(status=STATUS_OPEN))[0])
        for status in (STATUS_DRAFT, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED):
            self.assertFalse(state_machine.can_enroll(make_session(status=status))[0])

    def test_match_while_open_or_in_progress(self):
        self.assertTrue(state_machine.can_match(make_session(status=STATUS_OPEN))[0])
        self.assertTrue(state_machine.can_match(make_session(status=STATUS_IN_PROGRESS))[0])
        self.assertFalse(state_machine.can_match(make_session(status=STATUS_DRAFT))[0])
        self.assertFalse(state_machine.can_match(make_session(status=STATUS_CANCELLED))[0])

    def test_edit_only_before_start(self):
        self.assertTrue(state_machine.validate_action_for_status(make_session(status=STATUS_DRAFT), 'edit')[0])
        self.assertFalse(state_machine.validate_action_for_status(make_session(status=STATUS_IN_PROGRESS), 'edit')[0])

    def test_unknown_action(self):
        ok, reason = state_machine.validate_action_for_status(make_session(), 'teleport')
        self.assertFalse(ok)
        self.assertIn("Unknown action", reason)
