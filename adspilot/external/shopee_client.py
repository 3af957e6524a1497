import logging
import time
from datetime import date, datetime, time as dt_time
from typing import Any, Dict, List, Optional

import requests

from adspilot.core.exceptions import CredentialExpiredError, ExternalCallError

logger = logging.getLogger(__name__)

# Les montants de l'API sont multipliés par 100000
MONEY_SCALE = 100000

MANAGE_ACTIONS = ("pause", "resume", "stop", "edit_budget")


def clean_cookies(cookies: str) -> str:
    """Normalise la chaîne de cookies (espaces, retours ligne, séparateurs)"""
    flattened = " ".join(str(cookies or "").split())
    parts = [part.strip() for part in flattened.split(";")]
    return "; ".join(part for part in parts if part)


class ShopeeClient:
    """Client pour l'API seller Shopee (iklan produk)"""

    def __init__(self, base_url: str, store=None, timeout: int = 60,
                 rate_limit: int = 50, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.timeout = timeout
        self.rate_limit = rate_limit
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def _wait_for_rate_limit(self, toko_id: str):
        """Limite le nombre de requêtes par toko sur une fenêtre d'une seconde"""
        if self.store is None or not self.rate_limit:
            return
        while True:
            window = int(time.time())
            count = self.store.increment(f"shopee:rate:{toko_id}:{window}", 2)
            if count <= self.rate_limit:
                return
            time.sleep(max(window + 1 - time.time(), 0.01))

    def _headers(self, cookies: str) -> Dict[str, str]:
        headers = {
            "Cookie": clean_cookies(cookies),
            "Content-Type": "application/json",
        }
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    def _post(self, toko_id: str, cookies: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not cookies or not clean_cookies(cookies):
            raise CredentialExpiredError(toko_id, f"No active cookies found for toko {toko_id}")

        self._wait_for_rate_limit(toko_id)
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, headers=self._headers(cookies), json=payload, timeout=self.timeout)
        except requests.Timeout:
            raise ExternalCallError(f"Shopee API timeout after {self.timeout}s")
        except requests.RequestException as e:
            raise ExternalCallError(f"Shopee API request failed: {e}")

        if response.status_code in (401, 403):
            raise CredentialExpiredError(toko_id, status_code=response.status_code)
        if response.status_code >= 400:
            raise ExternalCallError(
                f"API returned {response.status_code}: {response.reason}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise ExternalCallError("Shopee API returned invalid JSON", status_code=response.status_code)

    def get_saldo(self, toko_id: str, cookies: str) -> float:
        """Saldo iklan du toko, en rupiah"""
        body = self._post(toko_id, cookies, "/api/pas/v1/meta/get_ads_data/", {
            "info_type_list": ["ads_expense", "ads_credit", "campaign_day", "has_ads", "incentive", "ads_toggle"],
        })
        data = body.get("data") or body
        total = (data.get("ads_credit") or {}).get("total") or 0
        return total / MONEY_SCALE

    def fetch_campaigns(self, toko_id: str, cookies: str, report_date: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Retourne les entrées brutes `entry_list` (campaign + report) du jour.

        Les montants ne sont pas normalisés ici.
        """
        report_date = report_date or date.today()
        start = datetime.combine(report_date, dt_time.min)
        end = datetime.combine(report_date, dt_time(23, 59, 59))

        body = self._post(toko_id, cookies, "/api/pas/v1/homepage/query/", {
            "start_time": int(start.timestamp()),
            "end_time": int(end.timestamp()),
            "filter_list": [{
                "campaign_type": "product_homepage",
                "state": "all",
                "search_term": "",
                "product_placement_list": ["all", "search_product", "targeting"],
                "npa_filter": "exclude_npa",
                "is_valid_rebate_only": False,
            }],
            "offset": 0,
            "limit": 10000,
        })

        entries = (body.get("data") or {}).get("entry_list") or body.get("entry_list") or []
        if not isinstance(entries, list):
            logger.warning(f"Unexpected homepage response for toko {toko_id}: entry_list is not a list")
            return []
        return entries

    def manage_ads(self, toko_id: str, cookies: str, action: str, campaign_id: str,
                   new_budget: Optional[int] = None) -> Dict[str, Any]:
        """
        Pause / resume / stop / edit_budget via `mass_edit`.

        `new_budget` est déjà à l'échelle API (rupiah * 100000). Un refus de
        Shopee (`code != 0`) est retourné comme échec structuré.
        """
        if action not in MANAGE_ACTIONS:
            raise ValueError(f"Unsupported action: {action}")

        payload: Dict[str, Any] = {"campaign_id_list": [int(campaign_id)]}
        if action == "edit_budget":
            if new_budget is None:
                raise ValueError("new_budget is required for edit_budget action")
            payload["type"] = "change_budget"
            payload["change_budget"] = {"daily_budget": new_budget}
        else:
            payload["type"] = action

        body = self._post(toko_id, cookies, "/api/pas/v1/homepage/mass_edit/", payload)

        if body.get("code") != 0:
            message = body.get("msg") or body.get("message") or "API returned error"
            logger.warning(f"Shopee rejected {action} on campaign {campaign_id} (toko {toko_id}): {message}")
            return {"success": False, "message": message, "data": body.get("data")}

        return {"success": True, "message": f"{action} successful", "data": body.get("data") or body}
