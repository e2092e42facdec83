import pytest

from leadscore.core.exceptions import InvalidConditionError
from leadscore.schemas.common import ConditionOperator
from leadscore.services.conditions import (
    SUPPORTED_OPERATORS,
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)

CONTEXT = {
    "event_type": "PAGE_VISITED",
    "related_type": "Pricing",
    "description": "",
    "lead_score": 42,
    "email": "ava@acme.com",
    "metadata": {"source": "webinar", "utm": {"campaign": "spring"}},
    "tags": ["vip"],
    "employees": "250",
}


def _cond(field, operator, value=None):
    return {"field": field, "operator": operator, "value": value}


class TestResolveField:
    def test_flat_key(self):
        assert resolve_field(CONTEXT, "email") == "ava@acme.com"

    def test_dotted_path(self):
        assert resolve_field(CONTEXT, "metadata.utm.campaign") == "spring"

    def test_missing_segment_is_none(self):
        assert resolve_field(CONTEXT, "metadata.utm.medium") is None
        assert resolve_field(CONTEXT, "email.domain") is None

    def test_literal_dotted_key_wins(self):
        assert resolve_field({"a.b": 1, "a": {"b": 2}}, "a.b") == 1


class TestOperators:
    """Every operator against the shared context."""

    @pytest.mark.parametrize(
        "condition,expected",
        [
            (_cond("event_type", "equals", "PAGE_VISITED"), True),
            (_cond("event_type", "equals", "page_visited"), False),
            (_cond("event_type", "not_equals", "EMAIL_OPENED"), True),
            (_cond("related_type", "contains", "pric"), True),
            (_cond("related_type", "not_contains", "blog"), True),
            (_cond("email", "starts_with", "AVA@"), True),
            (_cond("email", "ends_with", "@acme.com"), True),
            (_cond("email", "ends_with", "@other.com"), False),
            (_cond("lead_score", "greater_than", 40), True),
            (_cond("lead_score", "greater_than", 42), False),
            (_cond("lead_score", "greater_than_or_equals", 42), True),
            (_cond("lead_score", "less_than", "50"), True),
            (_cond("lead_score", "less_than_or_equals", 41), False),
            (_cond("employees", "greater_than", 100), True),
            (_cond("email", "greater_than", 1), False),
            (_cond("missing", "less_than", 1), False),
            (_cond("description", "is_empty"), True),
            (_cond("missing", "is_empty"), True),
            (_cond("email", "is_not_empty"), True),
            (_cond("metadata.source", "in", ["webinar", "event"]), True),
            (_cond("metadata.source", "not_in", ["webinar"]), False),
        ],
    )
    def test_operator(self, condition, expected):
        assert evaluate_condition(condition, CONTEXT) is expected

    def test_every_schema_operator_is_supported(self):
        assert {op.value for op in ConditionOperator} == SUPPORTED_OPERATORS


class TestInvalidConditions:
    def test_unknown_operator_fails_closed(self):
        with pytest.raises(InvalidConditionError):
            evaluate_condition(_cond("email", "regex", ".*"), CONTEXT)

    def test_missing_field_name(self):
        with pytest.raises(InvalidConditionError):
            evaluate_condition({"operator": "equals", "value": 1}, CONTEXT)

    def test_in_requires_list(self):
        with pytest.raises(InvalidConditionError):
            evaluate_condition(_cond("email", "in", "ava@acme.com"), CONTEXT)

    def test_invalid_condition_reported_after_failing_one(self):
        conditions = [
            _cond("email", "equals", "nobody@acme.com"),
            _cond("email", "bogus", 1),
        ]
        with pytest.raises(InvalidConditionError):
            evaluate_conditions(conditions, CONTEXT)


class TestConjunction:
    def test_empty_conditions_hold(self):
        assert evaluate_conditions([], CONTEXT) is True

    def test_all_must_hold(self):
        conditions = [
            _cond("metadata.source", "equals", "webinar"),
            _cond("lead_score", "greater_than", 100),
        ]
        assert evaluate_conditions(conditions, CONTEXT) is False

    def test_all_hold(self):
        conditions = [
            _cond("metadata.source", "equals", "webinar"),
            _cond("tags", "is_not_empty"),
        ]
        assert evaluate_conditions(conditions, CONTEXT) is True
