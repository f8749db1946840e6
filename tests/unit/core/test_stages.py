"""
Tests for the application stage transition policy.
"""

import pytest

from core.exceptions import InvalidInput, InvalidTransition, MissingDeclineReason
from core.pipeline.stages import (
    ALLOWED_TRANSITIONS,
    HIRE_SOURCES,
    SUBMIT_SOURCES,
    coerce_stage,
    is_transition_allowed,
    require_stage,
    validate_transition,
)
from database.models.applications import ApplicationStage, TERMINAL_STAGES

S = ApplicationStage
NON_TERMINAL = [stage for stage in S if stage not in TERMINAL_STAGES]


class TestTransitionTable:
    """Test the shape of the transition table."""

    def test_every_stage_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(S)

    @pytest.mark.parametrize("stage", sorted(TERMINAL_STAGES, key=lambda s: s.value))
    def test_terminal_stages_have_no_exits(self, stage):
        assert ALLOWED_TRANSITIONS[stage] == frozenset()
        assert stage.is_terminal()


class TestIsTransitionAllowed:
    """Test the non-raising policy check."""

    @pytest.mark.parametrize("from_stage", NON_TERMINAL)
    @pytest.mark.parametrize("to_stage", [S.WITHDRAWN, S.DRAFT, S.RECRUITER_REQUEST])
    def test_always_reachable_from_non_terminal(self, from_stage, to_stage):
        assert is_transition_allowed(from_stage, to_stage) is True

    @pytest.mark.parametrize("from_stage", sorted(TERMINAL_STAGES, key=lambda s: s.value))
    @pytest.mark.parametrize("to_stage", list(S))
    def test_terminal_never_moves(self, from_stage, to_stage):
        assert is_transition_allowed(from_stage, to_stage) is False

    @pytest.mark.parametrize(
        "from_stage,to_stage",
        [
            (S.DRAFT, S.AI_REVIEW),
            (S.AI_REVIEW, S.AI_REVIEWED),
            (S.AI_REVIEWED, S.SUBMITTED),
            (S.RECRUITER_PROPOSED, S.EXPIRED),
            (S.SCREEN, S.COMPANY_REVIEW),
            (S.INTERVIEW, S.OFFER),
            (S.OFFER, S.HIRED),
        ],
    )
    def test_listed_pairs_allowed(self, from_stage, to_stage):
        assert is_transition_allowed(from_stage, to_stage) is True

    @pytest.mark.parametrize(
        "from_stage,to_stage",
        [
            (S.DRAFT, S.HIRED),
            (S.DRAFT, S.OFFER),
            (S.AI_REVIEW, S.SUBMITTED),
            (S.INTERVIEW, S.HIRED),
            (S.SUBMITTED, S.EXPIRED),
        ],
    )
    def test_unlisted_pairs_rejected(self, from_stage, to_stage):
        assert is_transition_allowed(from_stage, to_stage) is False


class TestValidateTransition:
    """Test the raising validator."""

    def test_returns_target_stage(self):
        assert validate_transition("draft", "ai_review") == S.AI_REVIEW

    def test_invalid_pair_raises(self):
        with pytest.raises(InvalidTransition) as exc_info:
            validate_transition(S.DRAFT, S.HIRED)

        assert exc_info.value.from_stage == "draft"
        assert exc_info.value.to_stage == "hired"
        assert exc_info.value.status_code == 409

    def test_terminal_source_mentions_terminal(self):
        with pytest.raises(InvalidTransition) as exc_info:
            validate_transition(S.HIRED, S.WITHDRAWN)

        assert "terminal" in exc_info.value.message

    def test_reject_without_reason_raises(self):
        with pytest.raises(MissingDeclineReason):
            validate_transition(S.SUBMITTED, S.REJECTED)

    def test_reject_with_blank_reason_raises(self):
        with pytest.raises(MissingDeclineReason):
            validate_transition(S.SUBMITTED, S.REJECTED, decline_reason="   ")

    @pytest.mark.parametrize(
        "reason,details", [("not_a_fit", None), (None, "Needs more backend experience")]
    )
    def test_reject_with_reason_or_details(self, reason, details):
        assert validate_transition(S.SUBMITTED, S.REJECTED, reason, details) == S.REJECTED

    def test_invalid_pair_checked_before_reason(self):
        with pytest.raises(InvalidTransition):
            validate_transition(S.REJECTED, S.REJECTED)

    def test_unknown_stage_raises_invalid_input(self):
        with pytest.raises(InvalidInput):
            validate_transition(S.DRAFT, "archived")


class TestRequireStage:
    """Test the guard used by derived operations."""

    def test_allowed_source_passes(self):
        require_stage(S.OFFER, HIRE_SOURCES, S.HIRED, "Hire")

    def test_disallowed_source_raises(self):
        with pytest.raises(InvalidTransition) as exc_info:
            require_stage(S.DRAFT, SUBMIT_SOURCES, S.SUBMITTED, "Submit")

        assert "Submit requires stage in" in exc_info.value.message
        assert "ai_reviewed" in exc_info.value.message


class TestCoerceStage:
    def test_passes_enum_through(self):
        assert coerce_stage(S.SCREEN) is S.SCREEN

    def test_converts_value(self):
        assert coerce_stage("screen") is S.SCREEN

    def test_unknown_value(self):
        with pytest.raises(InvalidInput) as exc_info:
            coerce_stage("nope")

        assert exc_info.value.details == {"stage": "nope"}
