from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from adspilot.services import condition_evaluator, metric_resolver
from adspilot.services.condition_evaluator import ConditionResult
from adspilot.services.metric_resolver import CampaignData
from adspilot.services.rule_definitions import RuleDefinition


@dataclass
class MatchResult:
    """Résultat d'une règle sur une campagne"""
    fired: bool
    group_results: List[bool] = field(default_factory=list)
    condition_results: List[ConditionResult] = field(default_factory=list)
    snapshot: Dict[Tuple[str, str], Any] = field(default_factory=dict)

    @property
    def evaluations(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.condition_results]

    @property
    def met_count(self) -> int:
        return sum(1 for r in self.condition_results if r.met)


def all_conditions(rule: RuleDefinition):
    return [c for group in rule.groups for c in group.conditions]


def matches(rule: RuleDefinition, campaign: CampaignData,
            reference_date: Optional[date] = None) -> MatchResult:
    """
    Évalue tous les groupes de la règle contre la campagne.

    Le groupe 0 sert de base, les suivants sont ajoutés en OR. Les métriques
    sont résolues une seule fois avant toute comparaison.
    """
    if not rule.enabled:
        return MatchResult(fired=False)

    values = metric_resolver.snapshot(campaign, all_conditions(rule), reference_date)

    group_results: List[bool] = []
    condition_results: List[ConditionResult] = []
    for group in rule.groups:
        results = [
            condition_evaluator.evaluate(c, values[(c.metric, c.timeframe)])
            for c in group.conditions
        ]
        condition_results.extend(results)
        group_results.append(condition_evaluator.group_met(group, results))

    fired = False
    for index, met in enumerate(group_results):
        fired = met if index == 0 else fired or met

    return MatchResult(
        fired=fired,
        group_results=group_results,
        condition_results=condition_results,
        snapshot=values,
    )
