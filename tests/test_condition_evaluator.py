import pytest

from adspilot.services.condition_evaluator import compare, evaluate, group_met, to_float
from adspilot.services.rule_definitions import Condition, ConditionGroup, Logic, Operator


@pytest.mark.parametrize("operator,actual,expected,result", [
    (Operator.GT, 3, 2, True),
    (Operator.GT, 2, 2, False),
    (Operator.LT, 1, "2", True),
    (Operator.GTE, 2, 2, True),
    (Operator.LTE, 2.5, 2, False),
    (Operator.EQ, 2, "2.0", True),
    (Operator.EQ, "Ongoing", "ongoing", True),
    (Operator.GT, "abc", 2, False),
    (Operator.UNKNOWN, 5, 1, False),
    (Operator.EQ, None, 0, False),
])
def test_compare(operator, actual, expected, result):
    assert compare(operator, actual, expected) is result


def test_to_float():
    assert to_float(" 12.5 ") == 12.5
    assert to_float(True) is None
    assert to_float("nan") is None
    assert to_float("x") is None


def test_evaluate_reports_raw_operator():
    condition = Condition(metric="ctr", operator=Operator.GT, raw_operator="greater_than", value=2)
    result = evaluate(condition, 3.5)

    assert result.met is True
    assert result.to_dict() == {
        "metric": "ctr",
        "operator": "greater_than",
        "expectedValue": 2,
        "actualValue": 3.5,
        "met": True,
    }


def test_group_met_logic():
    condition = Condition(metric="ctr", operator=Operator.GT, raw_operator=">", value=2)
    met = evaluate(condition, 3)
    not_met = evaluate(condition, 1)

    assert group_met(ConditionGroup(conditions=(condition, condition)), [met, not_met]) is False
    assert group_met(ConditionGroup(conditions=(condition, condition), logic=Logic.OR), [met, not_met]) is True
    assert group_met(ConditionGroup(conditions=()), []) is False
