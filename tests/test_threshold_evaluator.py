from uuid import uuid4

import pytest

from leadscore.schemas.common import ContactStatus
from leadscore.services.threshold_evaluator import detect_transition, evaluate_status


class TestEvaluateStatus:
    """Status only ever advances through threshold evaluation."""

    @pytest.mark.parametrize(
        "score,current,expected",
        [
            (0, "new", ContactStatus.new),
            (49, "new", ContactStatus.new),
            (50, "new", ContactStatus.qualified),
            (99, "new", ContactStatus.qualified),
            (100, "new", ContactStatus.customer),
            (150, "qualified", ContactStatus.customer),
            (-20, "new", ContactStatus.new),
        ],
    )
    def test_advances_with_score(self, score, current, expected):
        assert evaluate_status(score, 50, 100, current) == expected

    @pytest.mark.parametrize(
        "score,current",
        [
            (0, "qualified"),
            (10, "customer"),
            (60, "customer"),
            (-100, "qualified"),
        ],
    )
    def test_never_regresses(self, score, current):
        assert evaluate_status(score, 50, 100, current) == ContactStatus(current)

    def test_equal_thresholds_go_straight_to_customer(self):
        assert evaluate_status(70, 70, 70, ContactStatus.new) == ContactStatus.customer


class TestDetectTransition:
    def test_none_when_status_unchanged(self):
        assert detect_transition(uuid4(), 30, 50, 100, "new", "event:EMAIL_OPENED") is None

    def test_returns_transition_details(self):
        contact_id, model_id = uuid4(), uuid4()

        transition = detect_transition(
            contact_id, 120, 50, 100, "new", "event:DEAL_CREATED", model_id
        )

        assert transition.contact_id == contact_id
        assert transition.status_from == ContactStatus.new
        assert transition.status_to == ContactStatus.customer
        assert transition.score == 120
        assert transition.reason == "event:DEAL_CREATED"
        assert transition.model_id == model_id
