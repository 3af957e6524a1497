"""
Synchronisation Shopee -> Metrics Store.

Les montants Shopee (budget, coût, GMV, CPC) arrivent multipliés par 100000 ;
ils sont ramenés en rupiah ici pour que le résolveur n'ait jamais à le faire.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

from adspilot.external.shopee_client import MONEY_SCALE, ShopeeClient
from adspilot.repositories.campaign_repository import CampaignRepository
from adspilot.repositories.toko_repository import TokoRepository

logger = logging.getLogger(__name__)

# Champ normalisé -> clés possibles dans `report`
REPORT_KEYS = {
    "broad_gmv": ("broad_gmv", "gmv"),
    "broad_order": ("broad_order", "order", "broad_order_count"),
    "broad_roi": ("broad_roi", "roi"),
    "click": ("click", "clicks", "click_count"),
    "cost": ("cost", "spend", "total_cost"),
    "cpc": ("cpc", "cost_per_click"),
    "ctr": ("ctr", "click_through_rate"),
    "impression": ("impression", "impressions", "impression_count"),
    "view": ("view", "views", "view_count"),
}

MONEY_FIELDS = ("broad_gmv", "cost", "cpc")


def _first(report: Dict[str, Any], keys: Iterable[str]) -> float:
    for key in keys:
        value = report.get(key)
        if value:
            return float(value)
    return 0.0


def normalize_entry(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Convertit une entrée `entry_list` en campagne + rapport normalisés"""
    campaign = entry.get("campaign") or {}
    if not campaign.get("campaign_id"):
        return None
    report = entry.get("report") or {}

    metrics = {name: _first(report, keys) for name, keys in REPORT_KEYS.items()}
    for name in MONEY_FIELDS:
        metrics[name] = metrics[name] / MONEY_SCALE

    if metrics["impression"] and metrics["cost"]:
        metrics["cpm"] = metrics["cost"] / metrics["impression"] * 1000
    else:
        metrics["cpm"] = 0.0

    return {
        "campaign_id": str(campaign["campaign_id"]),
        "title": campaign.get("name") or campaign.get("campaign_name") or "",
        "status": campaign.get("state") or campaign.get("status"),
        "daily_budget": float(campaign.get("daily_budget") or 0) / MONEY_SCALE,
        "metrics": metrics,
    }


class MetricsSyncService:
    """Alimente data_produk / data_produk_report depuis l'API Shopee"""

    def __init__(self, client: ShopeeClient, campaign_repository: CampaignRepository,
                 toko_repository: TokoRepository):
        self.client = client
        self.campaign_repository = campaign_repository
        self.toko_repository = toko_repository

    def sync_toko(self, toko_id: str, cookies: str, report_date: Optional[date] = None) -> int:
        """Synchronise les campagnes du jour d'un toko ; retourne le nombre de campagnes écrites"""
        report_date = report_date or date.today()
        entries = self.client.fetch_campaigns(toko_id, cookies, report_date)

        synced = 0
        for entry in entries:
            normalized = normalize_entry(entry)
            if normalized is None:
                continue
            self.campaign_repository.upsert_campaign(
                toko_id, normalized["campaign_id"], normalized["title"],
                normalized["status"], normalized["daily_budget"],
            )
            self.campaign_repository.upsert_report(
                toko_id, normalized["campaign_id"], report_date, normalized["metrics"]
            )
            synced += 1

        saldo = self.client.get_saldo(toko_id, cookies)
        self.toko_repository.update_saldo(toko_id, saldo)

        logger.info(f"✅ Synced {synced} campaigns for toko {toko_id} (saldo: Rp{saldo:,.0f})")
        return synced
