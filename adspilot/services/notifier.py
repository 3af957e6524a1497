import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from adspilot.services.rule_definitions import RuleDefinition

logger = logging.getLogger(__name__)


def format_datetime(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y %H.%M.%S")


def render_template(message: str, variables: Dict[str, Any]) -> str:
    """Remplace les variables `{nom}` d'un message personnalisé"""
    for key, value in variables.items():
        text = format_datetime(value) if isinstance(value, datetime) else str(value)
        message = message.replace("{" + key + "}", text)
    return message


def format_rule_message(rule: RuleDefinition, triggered_at: datetime, fired_count: int) -> str:
    lines = [
        "🔔 *Notifikasi Automation Rule*",
        "",
        f"*Rule:* {rule.name}",
        f"*ID:* `{rule.rule_id}`",
        f"*Waktu:* {format_datetime(triggered_at)}",
        f"*Campaign terpicu:* {fired_count}",
    ]

    if rule.groups:
        lines += ["", "*Kondisi yang dipicu:*"]
        for index, group in enumerate(rule.groups, start=1):
            text = " AND ".join(f"{c.metric} {c.raw_operator} {c.value}" for c in group.conditions)
            lines.append(f"{index}. {text}")

    if rule.actions:
        lines += ["", "*Aksi yang dieksekusi:*"]
        for index, action in enumerate(rule.actions, start=1):
            lines.append(f"{index}. {action.get('label') or action.kind}")

    return "\n".join(lines)


class TelegramNotifier:
    """
    Envoi des notifications de règles via l'API Bot Telegram.

    Le débit est limité par (chat, fenêtre) dans le stockage injecté. Un échec
    d'envoi est journalisé et n'interrompt jamais un passage du moteur.
    """

    def __init__(self, bot_token: Optional[str], store, api_url: str = "https://api.telegram.org",
                 rate_limit: int = 5, rate_window: int = 60, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.bot_token = bot_token
        self.store = store
        self.api_url = api_url.rstrip("/")
        self.rate_limit = rate_limit
        self.rate_window = rate_window
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token)

    def _allow(self, chat_id: str) -> bool:
        window = int(time.time()) // self.rate_window
        count = self.store.increment(f"telegram:{chat_id}:{window}", self.rate_window)
        return count <= self.rate_limit

    def send_message(self, chat_id: str, text: str, parse_mode: Optional[str] = "Markdown") -> bool:
        if not self.enabled:
            logger.debug("Telegram bot token not configured, message not sent")
            return False
        if not self._allow(chat_id):
            logger.warning(f"Telegram rate limit reached for chat {chat_id}, message dropped")
            return False

        payload = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            response = self.session.post(
                f"{self.api_url}/bot{self.bot_token}/sendMessage", json=payload, timeout=self.timeout
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"❌ Telegram sendMessage failed for chat {chat_id}: {e}")
            return False

        if not data.get("ok"):
            logger.error(f"❌ Telegram refused message for chat {chat_id}: {data.get('description')}")
            return False
        return True

    def notify_rule(self, chat_id: str, rule: RuleDefinition, fired_count: int,
                    triggered_at: Optional[datetime] = None) -> bool:
        """Résumé d'un passage où au moins une campagne a déclenché la règle"""
        triggered_at = triggered_at or datetime.now()
        custom = next((a for a in rule.actions if a.kind == "telegram_notification" and a.get("message")), None)
        if custom:
            text = render_template(custom.get("message"), {
                "ruleName": rule.name,
                "ruleId": rule.rule_id,
                "time": triggered_at,
                "action": ", ".join(a.get("label") or a.kind for a in rule.actions),
            })
        else:
            text = format_rule_message(rule, triggered_at, fired_count)
        return self.send_message(chat_id, text)
