from leadscore.core.constants import (
    CONTACT_STATUSES,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_LIMIT,
    RULE_POINTS_MAX,
    RULE_POINTS_MIN,
    STATUS_RANK,
)
from leadscore.core.default_scoring_rules import (
    DEFAULT_SCORING_MODEL,
    DEFAULT_SCORING_RULES,
)
from leadscore.schemas.common import ContactStatus, ScoringEventType
from leadscore.schemas.scoring_model import ScoringModelCreate, ScoringRuleCreate


class TestConstantsConsistency:
    """Verify that constants, enums, and schemas stay in sync."""

    def test_contact_statuses_match_enum(self):
        """Every ContactStatus value must appear in CONTACT_STATUSES."""
        assert {member.value for member in ContactStatus} == CONTACT_STATUSES

    def test_every_status_is_ranked(self):
        assert set(STATUS_RANK) == CONTACT_STATUSES

    def test_status_ladder_order(self):
        assert STATUS_RANK["new"] < STATUS_RANK["qualified"] < STATUS_RANK["customer"]

    def test_history_limits(self):
        assert 1 <= HISTORY_DEFAULT_LIMIT <= HISTORY_MAX_LIMIT


class TestDefaultScoringModel:
    """The seeded default model must pass the same validation as API input."""

    def test_default_model_is_valid(self):
        ScoringModelCreate(**DEFAULT_SCORING_MODEL, rules=DEFAULT_SCORING_RULES)

    def test_default_rules_are_valid(self):
        for rule in DEFAULT_SCORING_RULES:
            ScoringRuleCreate(**rule)

    def test_default_rule_event_types_exist(self):
        valid = {member.value for member in ScoringEventType}
        for rule in DEFAULT_SCORING_RULES:
            assert rule["event_type"] in valid

    def test_default_rule_points_in_range(self):
        for rule in DEFAULT_SCORING_RULES:
            assert RULE_POINTS_MIN <= rule["points"] <= RULE_POINTS_MAX

    def test_default_rule_names_unique(self):
        names = [rule["name"] for rule in DEFAULT_SCORING_RULES]
        assert len(names) == len(set(names))

    def test_default_model_is_default(self):
        assert DEFAULT_SCORING_MODEL["is_default"] is True
        assert DEFAULT_SCORING_MODEL["is_active"] is True
