"""
Tests for the Celery task wrappers.
"""

from unittest.mock import AsyncMock, patch

from core.exceptions import InvalidTransition, NotFound
from workers.celery_config import beat_schedule, task_routes
from workers.tasks.ai_reviews import complete_ai_review
from workers.tasks.proposals import expire_stale_proposals


class TestCompleteAIReview:
    """Test the AI review intake task."""

    def test_success(self):
        result = {"status": "success", "application_id": "app-1", "stage": "ai_reviewed"}

        with patch(
            "workers.tasks.ai_reviews._complete_ai_review", new=AsyncMock(return_value=result)
        ) as intake:
            assert complete_ai_review("app-1", "good_fit", 0.8, ["none"]) == result

        intake.assert_awaited_once_with("app-1", "good_fit", 0.8, ["none"])

    def test_stale_callback_not_retried(self):
        with patch(
            "workers.tasks.ai_reviews._complete_ai_review",
            new=AsyncMock(side_effect=InvalidTransition("withdrawn", "ai_reviewed")),
        ):
            result = complete_ai_review("app-1", "good_fit")

        assert result["status"] == "rejected"
        assert result["error"]["code"] == "INVALID_TRANSITION"

    def test_missing_application_not_retried(self):
        with patch(
            "workers.tasks.ai_reviews._complete_ai_review",
            new=AsyncMock(side_effect=NotFound("Application", "app-9")),
        ):
            result = complete_ai_review("app-9", "poor_fit")

        assert result == {
            "status": "rejected",
            "application_id": "app-9",
            "error": {
                "code": "NOT_FOUND",
                "message": "Application app-9 not found",
                "details": {"entity": "Application", "id": "app-9"},
            },
        }


class TestExpireStaleProposals:
    def test_reports_count(self):
        with patch(
            "workers.tasks.proposals._expire_stale_proposals", new=AsyncMock(return_value=3)
        ):
            assert expire_stale_proposals() == {"status": "success", "expired": 3}


class TestCeleryConfig:
    def test_expiry_scheduled(self):
        entry = beat_schedule["expire-stale-proposals"]

        assert entry["task"] == "workers.tasks.proposals.expire_stale_proposals"
        assert entry["schedule"] > 0

    def test_ai_reviews_routed_to_own_queue(self):
        assert task_routes["workers.tasks.ai_reviews.*"]["queue"] == "ai_reviews"
