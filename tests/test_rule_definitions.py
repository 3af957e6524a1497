import pytest

from adspilot.core.exceptions import ConfigurationError
from adspilot.models.rule import Rule
from adspilot.services.rule_definitions import (
    DEFAULT_TIMEFRAME,
    Logic,
    Operator,
    decode_rule,
    parse_operator,
)


def _rule(**overrides):
    fields = {
        "id": 7,
        "name": "Rule CTR",
        "status": "active",
        "conditions": [{"conditions": [{"metric": "ctr", "operator": "greater_than", "value": "2"}]}],
        "actions": [{"type": "add_budget", "amount": 10000}],
        "campaign_assignments": {"toko-1": ["111", 222]},
    }
    fields.update(overrides)
    return Rule(**fields)


@pytest.mark.parametrize("raw,expected", [
    (">", Operator.GT),
    ("greater_than", Operator.GT),
    ("<=", Operator.LTE),
    ("less_than_or_equal", Operator.LTE),
    ("==", Operator.EQ),
    ("equal", Operator.EQ),
    ("!=", Operator.UNKNOWN),
    (None, Operator.UNKNOWN),
])
def test_parse_operator_aliases(raw, expected):
    assert parse_operator(raw) == expected


def test_decode_rule_builds_groups_actions_and_assignments():
    definition = decode_rule(_rule())

    assert definition.rule_id == 7
    assert definition.enabled is True
    condition = definition.groups[0].conditions[0]
    assert condition.operator == Operator.GT
    assert condition.raw_operator == "greater_than"
    assert condition.timeframe == DEFAULT_TIMEFRAME
    assert definition.groups[0].logic == Logic.AND
    assert definition.action_type == "add_budget"
    assert definition.first_action.get("amount") == 10000
    assert definition.assignments == (("toko-1", ("111", "222")),)


def test_decode_rule_accepts_json_strings():
    definition = decode_rule(_rule(
        conditions='[{"logic": "OR", "conditions": [{"metric": "cost", "operator": "<", "value": 5}]}]',
        actions='[{"type": "pause_campaign"}]',
        campaign_assignments='{"toko-2": ["9"]}',
    ))

    assert definition.groups[0].logic == Logic.OR
    assert definition.action_type == "pause_campaign"
    assert definition.assignments == (("toko-2", ("9",)),)


def test_paused_rule_is_disabled():
    assert decode_rule(_rule(status="paused")).enabled is False


def test_invalid_json_raises_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        decode_rule(_rule(conditions="not json{"))
    assert exc_info.value.rule_id == 7


def test_condition_without_metric_is_rejected():
    with pytest.raises(ConfigurationError):
        decode_rule(_rule(conditions=[{"conditions": [{"operator": ">", "value": 1}]}]))


def test_describe_conditions():
    definition = decode_rule(_rule(conditions=[
        {"conditions": [{"metric": "ctr", "operator": ">", "value": 2},
                        {"metric": "cost", "operator": "<", "value": 100000}]},
        {"conditions": [{"metric": "broad_order", "operator": ">=", "value": 3}]},
    ]))
    assert definition.describe_conditions() == "(ctr > 2 AND cost < 100000) OR (broad_order >= 3)"
