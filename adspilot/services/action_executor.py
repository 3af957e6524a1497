"""
Exécution de l'action d'une règle déclenchée sur une campagne Shopee.

Les montants des actions sont en rupiah ; la conversion vers l'échelle API
(x100000) se fait uniquement au moment de l'appel `mass_edit`. Le budget de
départ est celui du snapshot d'évaluation, jamais relu.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from adspilot.external.shopee_client import MONEY_SCALE, ShopeeClient
from adspilot.services.metric_resolver import CampaignData
from adspilot.services.rule_definitions import Action

logger = logging.getLogger(__name__)

BUDGET_ACTIONS = {
    "set_budget": "set",
    "add_budget": "add",
    "increase_budget": "add",
    "reduce_budget": "reduce",
    "decrease_budget": "reduce",
}

STATUS_ACTIONS = {
    "start_campaign": ("resume", "ongoing"),
    "start": ("resume", "ongoing"),
    "resume": ("resume", "ongoing"),
    "pause_campaign": ("pause", "paused"),
    "pause": ("pause", "paused"),
    "stop_campaign": ("stop", "ended"),
    "stop": ("stop", "ended"),
}

NOTIFY_ACTIONS = ("telegram_notification", "notify")


@dataclass
class ActionResult:
    """Résultat de l'exécution d'une action"""
    success: bool
    action_type: str
    before: Any = None
    after: Any = None
    error_message: Optional[str] = None
    api_response: Optional[Dict[str, Any]] = None

    def action_taken(self) -> Dict[str, Any]:
        return {"type": self.action_type, "before": self.before, "after": self.after}


def _parse_number(raw: Any) -> Optional[float]:
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def compute_budget(mode: str, action: Action, current_budget: float) -> float:
    """Calcule le nouveau budget en rupiah ; lève ValueError si les paramètres sont invalides"""
    current = float(current_budget or 0)

    if action.get("adjustmentType") == "percentage" and mode != "set":
        percentage = _parse_number(action.get("percentage"))
        if percentage is None or percentage <= 0 or percentage > 100:
            raise ValueError(f"Invalid percentage value: {action.get('percentage')}. Must be between 0 and 100.")
        delta = current * percentage / 100
    else:
        delta = _parse_number(action.get("amount"))
        if delta is None:
            delta = _parse_number(action.get("value"))
        if delta is None:
            raise ValueError(f"Either amount or percentage must be provided for {action.kind} action")
        if delta < 0:
            raise ValueError(f"Invalid amount value: {delta}")

    if mode == "set":
        return delta
    if mode == "add":
        return current + delta
    return max(0.0, current - delta)


class ActionExecutor:
    """Applique une action via le client Shopee"""

    def __init__(self, client: ShopeeClient):
        self.client = client

    def execute(self, action: Optional[Action], campaign: CampaignData, cookies: str) -> ActionResult:
        """
        Exécute `action` sur `campaign`.

        Les erreurs réseau et de session remontent sous forme d'exception
        (ExternalCallError / CredentialExpiredError) ; un refus de Shopee ou un
        type inconnu revient comme ActionResult en échec.
        """
        if action is None:
            return ActionResult(success=False, action_type="unknown", error_message="Rule has no action")

        kind = action.kind
        if kind in BUDGET_ACTIONS:
            return self._execute_budget(BUDGET_ACTIONS[kind], action, campaign, cookies)
        if kind in STATUS_ACTIONS:
            return self._execute_status(kind, campaign, cookies)
        if kind in NOTIFY_ACTIONS:
            return ActionResult(success=True, action_type=kind)

        logger.warning(f"Unknown action type '{kind}' for campaign {campaign.campaign_id}")
        return ActionResult(success=False, action_type=kind, error_message=f"Unknown action type: {kind}")

    def _execute_budget(self, mode: str, action: Action, campaign: CampaignData, cookies: str) -> ActionResult:
        before = campaign.daily_budget or 0
        try:
            after = compute_budget(mode, action, before)
        except ValueError as e:
            return ActionResult(success=False, action_type=action.kind, before=before, error_message=str(e))

        api_budget = round(after * MONEY_SCALE)
        response = self.client.manage_ads(
            campaign.toko_id, cookies, "edit_budget", campaign.campaign_id, new_budget=api_budget
        )
        if not response["success"]:
            return ActionResult(
                success=False,
                action_type=action.kind,
                before=before,
                after=after,
                error_message=response["message"],
                api_response=response.get("data"),
            )

        logger.info(f"Budget {mode} on campaign {campaign.campaign_id}: {before} -> {after}")
        return ActionResult(success=True, action_type=action.kind, before=before, after=after,
                            api_response=response.get("data"))

    def _execute_status(self, kind: str, campaign: CampaignData, cookies: str) -> ActionResult:
        api_action, new_status = STATUS_ACTIONS[kind]
        response = self.client.manage_ads(campaign.toko_id, cookies, api_action, campaign.campaign_id)
        if not response["success"]:
            return ActionResult(success=False, action_type=kind, before=campaign.status,
                                error_message=response["message"], api_response=response.get("data"))

        logger.info(f"{api_action} on campaign {campaign.campaign_id}: {campaign.status} -> {new_status}")
        return ActionResult(success=True, action_type=kind, before=campaign.status, after=new_status,
                            api_response=response.get("data"))
