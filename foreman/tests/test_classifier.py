"""
Tests for transcript classification

Covers work order id normalization, rule precedence and the session
dependency of proceed phrases.
"""

import pytest

from foreman.intents.classifier import TranscriptClassifier, canonical_work_order_id
from foreman.intents.models import IntentKind


@pytest.fixture
def classifier():
    return TranscriptClassifier()


class TestWorkOrderCommands:
    """Start, resume and restart recognition"""

    @pytest.mark.parametrize("text,expected", [
        ("start work order 5", "WO-5"),
        ("Start the work order 42", "WO-42"),
        ("start workorder 2024", "WO-2024"),
        ("start wo 17", "WO-17"),
        ("start wo-17", "WO-17"),
        ("start work 3", "WO-3"),
        ("START WORK ORDER 9", "WO-9"),
    ])
    def test_start_variants(self, classifier, text, expected):
        result = classifier.classify(text)
        assert result.kind is IntentKind.START
        assert result.work_order_id == expected

    def test_digits_dictated_with_spaces_are_joined(self, classifier):
        result = classifier.classify("start work order 2 0 2 4")
        assert result.work_order_id == "WO-2024"

    @pytest.mark.parametrize("text", [
        "help me fix work order 20241008",
        "help me to fix work order 20241008",
        "can you help me fix the wo 20241008",
        "help me fix 20241008",
    ])
    def test_help_me_fix_starts(self, classifier, text):
        result = classifier.classify(text)
        assert result.kind is IntentKind.START
        assert result.work_order_id == "WO-20241008"
        assert result.rule == "help_me_fix"

    def test_resume(self, classifier):
        result = classifier.classify("resume work order 12")
        assert result.kind is IntentKind.RESUME
        assert result.work_order_id == "WO-12"

    def test_restart(self, classifier):
        result = classifier.classify("please restart the work order 12")
        assert result.kind is IntentKind.RESTART
        assert result.work_order_id == "WO-12"

    def test_restart_wins_over_start(self, classifier):
        result = classifier.classify("restart work order 8 and start work order 9")
        assert result.kind is IntentKind.RESTART
        assert result.work_order_id == "WO-8"

    def test_resume_wins_over_start(self, classifier):
        result = classifier.classify("start work order 1 no resume work order 2")
        assert result.kind is IntentKind.RESUME
        assert result.work_order_id == "WO-2"

    def test_command_wins_over_proceed(self, classifier):
        result = classifier.classify("next start work order 3", session_active=True)
        assert result.kind is IntentKind.START

    def test_canonical_id(self):
        assert canonical_work_order_id("2 0 2 4") == "WO-2024"
        assert canonical_work_order_id("77") == "WO-77"


class TestProceed:
    """Proceed phrases depend on an active session"""

    @pytest.mark.parametrize("text", [
        "proceed", "Continue please", "next", "move to next step",
        "that step is complete", "completed",
    ])
    def test_proceed_with_session(self, classifier, text):
        assert classifier.classify(text, session_active=True).kind is IntentKind.PROCEED

    def test_proceed_without_session_is_query(self, classifier):
        result = classifier.classify("proceed", session_active=False)
        assert result.kind is IntentKind.QUERY
        assert result.text == "proceed"

    def test_word_boundaries(self, classifier):
        assert classifier.classify("what is the nextgen model", session_active=True).kind is IntentKind.QUERY


class TestQueries:
    """Everything else is a general question"""

    def test_query_keeps_text(self, classifier):
        result = classifier.classify("How do I reset a tripped breaker?")
        assert result.kind is IntentKind.QUERY
        assert result.text == "How do I reset a tripped breaker?"
        assert result.work_order_id is None

    def test_start_without_number_is_query(self, classifier):
        assert classifier.classify("start work order").kind is IntentKind.QUERY

    def test_is_work_order_command(self, classifier):
        assert classifier.is_work_order_command("resume wo 4")
        assert not classifier.is_work_order_command("proceed")
        assert classifier.match_work_order_command("what time is it") is None

    def test_intent_kind_action_flag(self):
        assert IntentKind.START.is_work_order_action
        assert IntentKind.RESTART.is_work_order_action
        assert not IntentKind.PROCEED.is_work_order_action
        assert not IntentKind.QUERY.is_work_order_action
