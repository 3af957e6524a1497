"""
Reconstruction d'un passage du moteur à partir d'une ligne de log.

Les lignes sœurs partagent le run_id de l'ancre ; pour les lignes écrites
avant son introduction, on retombe sur la fenêtre de +/- 10 s autour de
`executed_at` pour la même règle. Les textes affichés sont en indonésien.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from adspilot.core.exceptions import AccessDeniedError, LogNotFoundError
from adspilot.core.permissions import LOGS_VIEW_ALL, LOGS_VIEW_OWN, has_permission
from adspilot.models.user import User
from adspilot.repositories.execution_log_repository import ExecutionLogRepository
from adspilot.repositories.rule_repository import RuleRepository
from adspilot.repositories.toko_repository import TokoRepository

logger = logging.getLogger(__name__)

METRIC_LABELS = {
    "ctr": "Tingkat Klik (CTR)",
    "cost": "Total Biaya Iklan",
    "clicks": "Jumlah Klik",
    "impressions": "Jumlah Tampilan",
    "budget": "Anggaran Harian",
    "orders": "Jumlah Order",
    "gmv": "Total Penjualan (GMV)",
    "broad_order": "Jumlah Order",
    "report_cost": "Total Biaya Iklan",
    "report_click": "Jumlah Klik",
    "report_impression": "Jumlah Tampilan",
    "report_ctr": "Tingkat Klik (CTR)",
    "report_broad_order": "Jumlah Order",
    "report_broad_gmv": "Total Penjualan (GMV)",
    "daily_budget": "Anggaran Harian",
}

OPERATOR_LABELS = {
    "greater_than": "lebih besar dari",
    "less_than": "kurang dari",
    "greater_than_or_equal": "lebih besar atau sama dengan",
    "less_than_or_equal": "kurang atau sama dengan",
    "equal": "sama dengan",
    ">": "lebih besar dari",
    "<": "kurang dari",
    ">=": "lebih besar atau sama dengan",
    "<=": "kurang atau sama dengan",
    "=": "sama dengan",
    "==": "sama dengan",
}

BUDGET_ACTION_TYPES = ("update_budget", "set_budget", "add_budget", "reduce_budget")
DEFAULT_FAILURE_REASON = "Terjadi kendala saat mengeksekusi rule"


def format_metric_name(metric: str) -> str:
    return METRIC_LABELS.get(str(metric).lower(), metric)


def format_operator(operator: str) -> str:
    return OPERATOR_LABELS.get(str(operator).lower(), operator)


def format_number(value: float, max_fraction_digits: int = 3) -> str:
    """Format id-ID : `.` pour les milliers, `,` pour les décimales"""
    text = f"{value:,.{max_fraction_digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_value(value: Any, metric: str) -> str:
    if value is None:
        return "Tidak tersedia"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)

    metric_lower = str(metric).lower()
    if "ctr" in metric_lower:
        return f"{value:.2f}%"
    if "cost" in metric_lower or "budget" in metric_lower or "gmv" in metric_lower:
        return f"Rp {format_number(value)}"
    return format_number(value)


def build_conditions_narrative(conditions: List[Dict[str, Any]]) -> str:
    """`(a DAN b) ATAU (c)` à partir des groupes de conditions bruts"""
    parts = []
    for index, group in enumerate(conditions):
        text = " DAN ".join(
            f"{format_metric_name(c.get('metric', ''))} {format_operator(c.get('operator', ''))} "
            f"{format_value(c.get('value'), c.get('metric', ''))}"
            for c in (group.get("conditions") or [])
        )
        parts.append(f" ATAU ({text})" if index > 0 else f"({text})")
    return "".join(parts)


def describe_action(action: Dict[str, Any]) -> Dict[str, str]:
    action_type = action.get("type") or "Unknown"
    if action_type in BUDGET_ACTION_TYPES:
        label = action_type.replace("_", " ", 1).title()
    else:
        label = action_type
    return {"type": action_type, "description": f"Aksi: {label}"}


def _load_json(raw: Any, default):
    if raw is None or raw == "":
        return default
    if isinstance(raw, (str, bytes)):
        try:
            return json.loads(raw)
        except ValueError:
            logger.error("Invalid JSON in stored rule/log payload")
            return default
    return raw


def build_campaign_detail(row: Dict[str, Any], actions: List[Dict[str, Any]]) -> Dict[str, Any]:
    log = row["log"]
    execution_data = _load_json(log.execution_data, {}) or {}

    condition_results = [
        {
            "metric": item.get("metric") or "",
            "operator": item.get("operator") or "=",
            "value": item.get("expectedValue") or 0,
            "actualValue": item["actualValue"] if item.get("actualValue") is not None else "N/A",
            "met": bool(item.get("met")),
        }
        for item in (execution_data.get("evaluations") or [])
        if isinstance(item, dict)
    ]

    total = len(condition_results)
    met = sum(1 for r in condition_results if r["met"])
    summary = f"({total} Kondisi: Terpenuhi {met}, Gagal {total - met})"

    skipped = execution_data.get("skipped") is True
    if skipped:
        status, message = "skipped", f"Dilewati - {summary}"
    elif log.status == "failed":
        status, message = "failed", f"Gagal Eksekusi - {log.error_message or DEFAULT_FAILURE_REASON}"
    else:
        status, message = "success", f"Berhasil - {summary}"

    detail = {
        "campaignId": log.campaign_id,
        "campaignName": row.get("campaign_title") or f"Campaign {log.campaign_id}",
        "tokoId": log.toko_id,
        "tokoName": row.get("nama_toko") or log.toko_id,
        "status": status,
        "conditionResults": condition_results,
        "action": None,
        "message": message,
    }
    if status == "success" and actions:
        detail["action"] = describe_action(actions[0])
    return detail


class LogReader:
    """Lecture détaillée d'un passage de règle pour l'affichage"""

    def __init__(self, db: Session, window_seconds: int = 10):
        self.logs = ExecutionLogRepository(db)
        self.rules = RuleRepository(db)
        self.tokos = TokoRepository(db)
        self.window_seconds = window_seconds

    def get_log_detail(self, log_id: int, user: User) -> Dict[str, Any]:
        can_view_all = has_permission(user, LOGS_VIEW_ALL)
        if not can_view_all and not has_permission(user, LOGS_VIEW_OWN):
            raise AccessDeniedError("Access denied")

        anchor = self.logs.get_by_id(log_id)
        if anchor is None:
            raise LogNotFoundError("Log not found")

        allowed: Optional[set] = None
        if not can_view_all:
            allowed = self.tokos.get_allowed_toko_ids(user.id)
            if not allowed:
                return self._empty_detail(anchor.rule_id)
            if anchor.toko_id not in allowed:
                raise AccessDeniedError("Access denied to this log data")

        rule = self.rules.get_by_id(anchor.rule_id)
        if rule is None:
            raise LogNotFoundError("Rule associated with log not found")

        rows = self.logs.get_run_siblings(anchor, self.window_seconds, allowed)
        seen = set()
        unique_rows = []
        for row in rows:
            key = (row["log"].toko_id, row["log"].campaign_id)
            if key in seen:
                continue
            seen.add(key)
            unique_rows.append(row)

        conditions = _load_json(rule.conditions, [])
        actions = _load_json(rule.actions, [])

        return {
            "ruleId": rule.id,
            "ruleName": rule.name,
            "ruleDescription": rule.description or "",
            "category": rule.category or "",
            "conditions": build_conditions_narrative(conditions),
            "campaignDetails": [build_campaign_detail(row, actions) for row in unique_rows],
        }

    def _empty_detail(self, rule_id: int) -> Dict[str, Any]:
        rule = self.rules.get_by_id(rule_id)
        return {
            "ruleId": rule_id,
            "ruleName": rule.name if rule else "",
            "ruleDescription": (rule.description if rule else "") or "",
            "category": (rule.category if rule else "") or "",
            "conditions": "",
            "campaignDetails": [],
        }
