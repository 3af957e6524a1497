"""
Évaluation d'une condition contre une valeur observée.

Un opérateur inconnu n'est jamais satisfait. Une valeur non numérique n'est
acceptée que par la famille `=` (comparaison de chaînes sans casse).
"""
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from adspilot.services.rule_definitions import Condition, ConditionGroup, Logic, Operator


@dataclass(frozen=True)
class ConditionResult:
    condition: Condition
    actual_value: Any
    met: bool

    def to_dict(self) -> dict:
        return {
            "metric": self.condition.metric,
            "operator": self.condition.raw_operator,
            "expectedValue": self.condition.value,
            "actualValue": self.actual_value,
            "met": self.met,
        }


def to_float(value: Any) -> Optional[float]:
    """Convertit en float ; None si la valeur n'est pas numérique"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def compare(operator: Operator, actual: Any, expected: Any) -> bool:
    if operator == Operator.UNKNOWN:
        return False

    left = to_float(actual)
    right = to_float(expected)
    if left is None or right is None:
        if operator == Operator.EQ and actual is not None and expected is not None:
            return str(actual).strip().lower() == str(expected).strip().lower()
        return False

    if operator == Operator.GT:
        return left > right
    if operator == Operator.LT:
        return left < right
    if operator == Operator.GTE:
        return left >= right
    if operator == Operator.LTE:
        return left <= right
    return left == right


def evaluate(condition: Condition, actual_value: Any) -> ConditionResult:
    return ConditionResult(
        condition=condition,
        actual_value=actual_value,
        met=compare(condition.operator, actual_value, condition.value),
    )


def group_met(group: ConditionGroup, results: Iterable[ConditionResult]) -> bool:
    """AND : toutes satisfaites ; OR : au moins une. Un groupe vide n'est pas satisfait."""
    flags = [r.met for r in results]
    if not flags:
        return False
    if group.logic == Logic.OR:
        return any(flags)
    return all(flags)
