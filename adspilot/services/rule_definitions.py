"""
Décodage des colonnes JSON `conditions` / `actions` / `campaign_assignments`
en structures immuables.

Les opérateurs inconnus sont conservés sous la variante `Operator.UNKNOWN`
(jamais satisfaits) ; les métriques inconnues restent une chaîne brute que le
résolveur renvoie telle quelle.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from adspilot.core.exceptions import ConfigurationError
from adspilot.models.rule import Rule

DEFAULT_TIMEFRAME = "today"


class Operator(str, Enum):
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "="
    UNKNOWN = "unknown"


OPERATOR_ALIASES = {
    ">": Operator.GT,
    "greater_than": Operator.GT,
    "<": Operator.LT,
    "less_than": Operator.LT,
    ">=": Operator.GTE,
    "greater_than_or_equal": Operator.GTE,
    "greater_equal": Operator.GTE,
    "<=": Operator.LTE,
    "less_than_or_equal": Operator.LTE,
    "less_equal": Operator.LTE,
    "=": Operator.EQ,
    "==": Operator.EQ,
    "equal": Operator.EQ,
}


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"


def parse_operator(raw: Any) -> Operator:
    if raw is None:
        return Operator.UNKNOWN
    return OPERATOR_ALIASES.get(str(raw).strip().lower(), Operator.UNKNOWN)


@dataclass(frozen=True)
class Condition:
    metric: str
    operator: Operator
    raw_operator: str
    value: Any
    timeframe: str = DEFAULT_TIMEFRAME


@dataclass(frozen=True)
class ConditionGroup:
    conditions: Tuple[Condition, ...]
    logic: Logic = Logic.AND


@dataclass(frozen=True)
class Action:
    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()

    def get(self, key: str, default: Any = None) -> Any:
        return dict(self.params).get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, **dict(self.params)}


@dataclass(frozen=True)
class RuleDefinition:
    rule_id: int
    name: str
    enabled: bool
    groups: Tuple[ConditionGroup, ...]
    actions: Tuple[Action, ...]
    assignments: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    user_id: Optional[int] = None
    telegram_notification: bool = False
    description: str = ""
    category: str = ""

    @property
    def first_action(self) -> Optional[Action]:
        return self.actions[0] if self.actions else None

    @property
    def action_type(self) -> str:
        return self.actions[0].kind if self.actions else "unknown"

    def describe_conditions(self) -> str:
        return " OR ".join(
            "(" + " AND ".join(f"{c.metric} {c.raw_operator} {c.value}" for c in g.conditions) + ")"
            for g in self.groups
        )


def _load_json(raw: Any, field_name: str, rule_id: Optional[int], default):
    if raw is None or raw == "":
        return default
    if isinstance(raw, (bytes, str)):
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid JSON in {field_name}: {e}", rule_id)
    return raw


def parse_condition(raw: Dict[str, Any], rule_id: Optional[int] = None) -> Condition:
    if not isinstance(raw, dict) or "metric" not in raw:
        raise ConfigurationError(f"Malformed condition: {raw!r}", rule_id)
    raw_operator = str(raw.get("operator", ""))
    return Condition(
        metric=str(raw["metric"]),
        operator=parse_operator(raw_operator),
        raw_operator=raw_operator,
        value=raw.get("value"),
        timeframe=str(raw.get("timeframe") or DEFAULT_TIMEFRAME),
    )


def parse_condition_group(raw: Dict[str, Any], rule_id: Optional[int] = None) -> ConditionGroup:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Malformed condition group: {raw!r}", rule_id)
    conditions = raw.get("conditions") or []
    if not isinstance(conditions, list):
        raise ConfigurationError("Condition group 'conditions' must be a list", rule_id)
    logic_raw = str(raw.get("logic") or raw.get("logicalOperator") or "AND").upper()
    logic = Logic.OR if logic_raw == "OR" else Logic.AND
    return ConditionGroup(
        conditions=tuple(parse_condition(c, rule_id) for c in conditions),
        logic=logic,
    )


def parse_action(raw: Dict[str, Any], rule_id: Optional[int] = None) -> Action:
    if not isinstance(raw, dict) or not raw.get("type"):
        raise ConfigurationError(f"Malformed action: {raw!r}", rule_id)
    params = tuple(sorted((k, v) for k, v in raw.items() if k != "type"))
    return Action(kind=str(raw["type"]), params=params)


def parse_conditions(raw: Any, rule_id: Optional[int] = None) -> Tuple[ConditionGroup, ...]:
    data = _load_json(raw, "conditions", rule_id, [])
    if not isinstance(data, list):
        raise ConfigurationError("conditions must be a list of groups", rule_id)
    return tuple(parse_condition_group(g, rule_id) for g in data)


def parse_actions(raw: Any, rule_id: Optional[int] = None) -> Tuple[Action, ...]:
    data = _load_json(raw, "actions", rule_id, [])
    if not isinstance(data, list):
        raise ConfigurationError("actions must be a list", rule_id)
    return tuple(parse_action(a, rule_id) for a in data)


def parse_assignments(raw: Any, rule_id: Optional[int] = None) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    data = _load_json(raw, "campaign_assignments", rule_id, {})
    if not isinstance(data, dict):
        raise ConfigurationError("campaign_assignments must be an object", rule_id)
    assignments: List[Tuple[str, Tuple[str, ...]]] = []
    for toko_id, campaign_ids in data.items():
        if not isinstance(campaign_ids, list):
            raise ConfigurationError(f"Assignments for toko {toko_id} must be a list", rule_id)
        assignments.append((str(toko_id), tuple(str(c) for c in campaign_ids)))
    return tuple(assignments)


def decode_rule(rule: Rule) -> RuleDefinition:
    """Convertit une ligne data_rules en RuleDefinition ; lève ConfigurationError"""
    return RuleDefinition(
        rule_id=rule.id,
        name=rule.name,
        enabled=rule.status == "active",
        groups=parse_conditions(rule.conditions, rule.id),
        actions=parse_actions(rule.actions, rule.id),
        assignments=parse_assignments(rule.campaign_assignments, rule.id),
        user_id=rule.user_id,
        telegram_notification=bool(rule.telegram_notification),
        description=rule.description or "",
        category=rule.category or "",
    )
