from functools import lru_cache

from adspilot.config import settings
from adspilot.core.cache import build_store
from adspilot.core.database import db_manager
from adspilot.external.shopee_client import ShopeeClient
from adspilot.services.notifier import TelegramNotifier
from adspilot.workers.rule_evaluation_worker import RuleEvaluationWorker


# === STOCKAGE PARTAGÉ ===
@lru_cache()
def get_store():
    """Verrous en vol et fenêtres de rate limit (Redis si configuré)"""
    return build_store(settings.REDIS_URL)


# === CLIENTS EXTERNES ===
@lru_cache()
def get_shopee_client() -> ShopeeClient:
    return ShopeeClient(
        base_url=settings.SHOPEE_API_BASE_URL,
        store=get_store(),
        timeout=settings.SHOPEE_API_TIMEOUT,
        rate_limit=settings.SHOPEE_API_RATE_LIMIT,
        user_agent=settings.SHOPEE_USER_AGENT
    )


@lru_cache()
def get_notifier() -> TelegramNotifier:
    return TelegramNotifier(
        bot_token=settings.TELEGRAM_BOT_TOKEN,
        store=get_store(),
        api_url=settings.TELEGRAM_API_URL,
        rate_limit=settings.NOTIFICATION_RATE_LIMIT,
        rate_window=settings.NOTIFICATION_RATE_WINDOW
    )


# === WORKERS ===
_rule_worker_instance = None


def get_rule_evaluation_worker() -> RuleEvaluationWorker:
    """Factory pour le worker d'évaluation des règles (singleton)"""
    global _rule_worker_instance
    if _rule_worker_instance is None:
        _rule_worker_instance = RuleEvaluationWorker(
            session_factory=db_manager.session_factory,
            shopee_client=get_shopee_client(),
            store=get_store(),
            notifier=get_notifier(),
            max_workers=settings.MAX_CONCURRENT_CAMPAIGNS,
            lock_ttl=settings.INFLIGHT_LOCK_TTL,
            check_interval=settings.WORKER_CHECK_INTERVAL,
            timezone=settings.TIMEZONE,
            missed_schedule_tolerance=settings.MISSED_SCHEDULE_TOLERANCE,
            sync_before_run=settings.SYNC_METRICS_BEFORE_RUN
        )
    return _rule_worker_instance


def reset_rule_evaluation_worker():
    """Réinitialise le singleton (tests, rechargement de configuration)"""
    global _rule_worker_instance
    _rule_worker_instance = None
