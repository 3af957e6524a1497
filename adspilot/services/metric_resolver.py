"""
Résolution d'une métrique de campagne sur une fenêtre de temps.

Les montants sont déjà normalisés (rupiah) par la synchronisation ; aucune
remise à l'échelle ici. Une valeur absente vaut 0.
"""
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple, Union

from adspilot.services.rule_definitions import Condition, DEFAULT_TIMEFRAME

Number = Union[int, float]

ADDITIVE_FIELDS = ("cost", "click", "impression", "view", "broad_gmv", "broad_order")
DERIVED_FIELDS = ("ctr", "cpc", "cpm", "broad_roi")
CAMPAIGN_FIELDS = ("daily_budget", "saldo")

METRIC_ALIASES = {
    "clicks": "click",
    "impressions": "impression",
    "views": "view",
    "orders": "broad_order",
    "order": "broad_order",
    "gmv": "broad_gmv",
    "roas": "broad_roi",
    "roi": "broad_roi",
    "budget": "daily_budget",
}

KNOWN_METRICS = frozenset(ADDITIVE_FIELDS + DERIVED_FIELDS + CAMPAIGN_FIELDS)

_LAST_N_DAYS = re.compile(r"^last_(\d+)_days?$")


@dataclass
class CampaignData:
    """Campagne telle que fournie par le Metrics Store"""
    campaign_id: str
    toko_id: str
    title: str = ""
    status: Optional[str] = None
    daily_budget: Number = 0
    saldo: Number = 0
    reports: Dict[date, Dict[str, Number]] = field(default_factory=dict)


def canonical_metric(metric: str) -> Optional[str]:
    """Nom canonique, ou None si la métrique est hors vocabulaire"""
    key = str(metric).strip().lower()
    if key.startswith("report_"):
        key = key[len("report_"):]
    key = METRIC_ALIASES.get(key, key)
    return key if key in KNOWN_METRICS else None


def select_report_dates(reports: Iterable[date], timeframe: str, reference_date: date) -> List[date]:
    """Dates de rapport couvertes par la fenêtre"""
    available = sorted(reports)
    timeframe = (timeframe or DEFAULT_TIMEFRAME).strip().lower()

    if timeframe == "lifetime":
        return available
    if timeframe == "yesterday":
        target = reference_date - timedelta(days=1)
        return [d for d in available if d == target]

    match = _LAST_N_DAYS.match(timeframe)
    if match:
        days = max(int(match.group(1)), 1)
        start = reference_date - timedelta(days=days - 1)
        return [d for d in available if start <= d <= reference_date]

    return [d for d in available if d == reference_date]


def _ratio(numerator: Number, denominator: Number, factor: Number = 1) -> Number:
    if not denominator:
        return 0
    return numerator / denominator * factor


def resolve(campaign: CampaignData, metric: str, timeframe: str = DEFAULT_TIMEFRAME,
            reference_date: Optional[date] = None) -> Union[Number, str]:
    """Retourne la valeur numérique de `metric`, ou la chaîne brute si inconnue"""
    key = canonical_metric(metric)
    if key is None:
        return metric

    if key in CAMPAIGN_FIELDS:
        return getattr(campaign, key) or 0

    reference_date = reference_date or date.today()
    rows = [campaign.reports[d] for d in select_report_dates(campaign.reports.keys(), timeframe, reference_date)]
    if not rows:
        return 0

    totals = {name: sum((row.get(name) or 0) for row in rows) for name in ADDITIVE_FIELDS}
    if key in ADDITIVE_FIELDS:
        return totals[key]

    # Une seule ligne : on garde le ratio stocké s'il est renseigné
    if len(rows) == 1 and rows[0].get(key):
        return rows[0][key]

    if key == "ctr":
        return _ratio(totals["click"], totals["impression"], 100)
    if key == "cpc":
        return _ratio(totals["cost"], totals["click"])
    if key == "cpm":
        return _ratio(totals["cost"], totals["impression"], 1000)
    return _ratio(totals["broad_gmv"], totals["cost"])


def snapshot(campaign: CampaignData, conditions: Iterable[Condition],
             reference_date: Optional[date] = None) -> Dict[Tuple[str, str], Union[Number, str]]:
    """Résout chaque couple (métrique, fenêtre) une seule fois avant l'évaluation"""
    reference_date = reference_date or date.today()
    values: Dict[Tuple[str, str], Union[Number, str]] = {}
    for condition in conditions:
        key = (condition.metric, condition.timeframe)
        if key not in values:
            values[key] = resolve(campaign, condition.metric, condition.timeframe, reference_date)
    return values
