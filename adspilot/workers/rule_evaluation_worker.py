import asyncio
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import pytz
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from adspilot.core.database import utc_now
from adspilot.core.exceptions import ConfigurationError, CredentialExpiredError, ExternalCallError
from adspilot.external.shopee_client import ShopeeClient
from adspilot.repositories.campaign_repository import CampaignRepository
from adspilot.repositories.execution_log_repository import ExecutionLogRepository
from adspilot.repositories.rule_repository import RuleRepository
from adspilot.repositories.toko_repository import TokoRepository
from adspilot.repositories.user_repository import UserRepository
from adspilot.services import rule_matcher
from adspilot.services.action_executor import ActionExecutor
from adspilot.services.metrics_sync import MetricsSyncService
from adspilot.services.notifier import TelegramNotifier
from adspilot.services.rule_definitions import RuleDefinition, decode_rule
from adspilot.workers.scheduler import should_execute

logger = logging.getLogger(__name__)

SKIP_REASON = "Kondisi tidak terpenuhi"
CAMPAIGN_NOT_FOUND = "Campaign tidak ditemukan di data toko"

# Issues d'une paire (règle, campagne)
SUCCESS = "success"
SKIPPED = "skipped"
FAILED = "failed"
IN_FLIGHT = "in_flight"


def _empty_summary(run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "run_id": run_id,
        "timestamp": None,
        "summary": {
            "rules_loaded": 0,
            "rules_scheduled": 0,
            "rules_evaluated": 0,
            "configuration_errors": 0,
            SUCCESS: 0,
            SKIPPED: 0,
            FAILED: 0,
            IN_FLIGHT: 0,
        },
        "duration_seconds": 0,
        "aborted": False,
        "errors": [],
    }


class RuleEvaluationWorker:
    """
    Orchestrateur des règles d'automatisation.

    Un tick (`run_cycle`) charge les règles actives, garde celles que le
    planificateur retient, puis évalue chaque paire (règle, campagne) dans un
    pool de threads borné. Chaque paire évaluée écrit une ligne de log,
    commitée seule, et tous les logs d'un tick partagent le même run_id.
    """

    def __init__(self, session_factory: sessionmaker, shopee_client: ShopeeClient, store,
                 notifier: Optional[TelegramNotifier] = None, max_workers: int = 10,
                 lock_ttl: int = 120, check_interval: int = 60, timezone: str = "Asia/Jakarta",
                 missed_schedule_tolerance: int = 300, sync_before_run: bool = False):
        self.session_factory = session_factory
        self.shopee_client = shopee_client
        self.action_executor = ActionExecutor(shopee_client)
        self.store = store
        self.notifier = notifier
        self.max_workers = max_workers
        self.lock_ttl = lock_ttl
        self.check_interval = check_interval
        self.timezone = timezone
        self.missed_schedule_tolerance = missed_schedule_tolerance
        self.sync_before_run = sync_before_run

        self.running = False
        self._task = None
        self._cycle_lock = threading.Lock()
        self.last_run_summary = _empty_summary()

    async def start(self):
        """Démarre la boucle du worker"""
        if self.running:
            return

        self.running = True
        logger.info("🔄 Rule evaluation worker started")

        while self.running:
            try:
                await self.evaluate_all_rules()
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                logger.info("🔄 Worker cancelled")
                break
            except Exception as e:
                logger.exception(f"❌ Error in rule evaluation: {e}")
                if self.running:
                    await asyncio.sleep(self.check_interval)

        logger.info("⏹️ Rule evaluation worker stopped")

    def stop(self):
        """Arrête le worker"""
        self.running = False

    def is_healthy(self) -> bool:
        return self.running and self._task is not None and not self._task.done()

    async def evaluate_all_rules(self) -> Dict[str, Any]:
        """Exécute un tick hors de la boucle asyncio"""
        return await asyncio.to_thread(self.run_cycle)

    def get_last_run_summary(self) -> Dict[str, Any]:
        return self.last_run_summary

    def _local_today(self, now_utc: datetime) -> date:
        return pytz.utc.localize(now_utc).astimezone(pytz.timezone(self.timezone)).date()

    def run_cycle(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Un passage complet ; deux ticks ne se chevauchent jamais"""
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("⚠️ Previous tick still running, skipping this one")
            return self.last_run_summary

        try:
            return self._run_cycle(now or utc_now())
        finally:
            self._cycle_lock.release()

    def _run_cycle(self, now: datetime) -> Dict[str, Any]:
        run_id = str(uuid.uuid4())
        results = _empty_summary(run_id)
        results["timestamp"] = now.isoformat()
        counters = results["summary"]
        started = utc_now()

        db = self.session_factory()
        try:
            try:
                rules = RuleRepository(db).get_active_rules()
            except OperationalError as e:
                results["aborted"] = True
                results["errors"].append(f"Database unreachable: {e}")
                logger.error(f"💥 Database unreachable, tick aborted: {e}")
                self.last_run_summary = results
                return results

            counters["rules_loaded"] = len(rules)
            scheduled = [
                rule for rule in rules
                if should_execute(rule, now, self.timezone, self.missed_schedule_tolerance)
            ]
            counters["rules_scheduled"] = len(scheduled)
            logger.info(f"📋 Run {run_id}: {len(scheduled)}/{len(rules)} active rules due")

            definitions: List[RuleDefinition] = []
            for rule in scheduled:
                try:
                    definitions.append(decode_rule(rule))
                except ConfigurationError as e:
                    counters["configuration_errors"] += 1
                    results["errors"].append(f"Rule {rule.id}: {e}")
                    logger.error(f"[Rule: {rule.name} ({rule.id})] ❌ Invalid configuration, skipped: {e}")
        finally:
            db.close()

        reference_date = self._local_today(now)
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="rule-eval") as pool:
            for definition in definitions:
                try:
                    outcomes = self._run_rule(pool, definition, run_id, reference_date)
                except OperationalError as e:
                    results["aborted"] = True
                    results["errors"].append(f"Database unreachable: {e}")
                    logger.error(f"💥 Database unreachable during rule {definition.rule_id}, tick aborted: {e}")
                    break
                except Exception as e:
                    results["errors"].append(f"Rule {definition.rule_id}: {e}")
                    logger.exception(f"[Rule: {definition.name} ({definition.rule_id})] 💥 Rule evaluation failed: {e}")
                    continue

                counters["rules_evaluated"] += 1
                for outcome in outcomes:
                    counters[outcome] += 1

        results["duration_seconds"] = round((utc_now() - started).total_seconds(), 2)
        self.last_run_summary = results
        logger.info(
            f"✅ Run {run_id} completed: {counters[SUCCESS]} success, {counters[SKIPPED]} skipped, "
            f"{counters[FAILED]} failed, {counters[IN_FLIGHT]} in flight ({results['duration_seconds']}s)"
        )
        return results

    def _run_rule(self, pool: ThreadPoolExecutor, rule: RuleDefinition, run_id: str,
                  reference_date: date) -> List[str]:
        prefix = f"[Rule: {rule.name} ({rule.rule_id})]"
        logger.info(f"{prefix} Conditions: {rule.describe_conditions()} | Action: {rule.action_type}")

        pairs: List[Tuple[str, str, Optional[str]]] = []
        db = self.session_factory()
        try:
            tokos = TokoRepository(db)
            for toko_id, campaign_ids in rule.assignments:
                cookies = tokos.get_credentials(toko_id)
                if cookies is None:
                    logger.warning(f"{prefix} No active cookies for toko {toko_id}")
                elif self.sync_before_run:
                    self._sync_toko(db, toko_id, cookies, reference_date)
                pairs.extend((toko_id, campaign_id, cookies) for campaign_id in campaign_ids)
        finally:
            db.close()

        futures = [
            (campaign_id, pool.submit(self._process_pair, rule, toko_id, campaign_id, cookies, run_id,
                                      reference_date))
            for toko_id, campaign_id, cookies in pairs
        ]

        outcomes: List[str] = []
        fired = 0
        for campaign_id, future in futures:
            try:
                status, pair_fired = future.result()
            except OperationalError:
                raise
            except Exception as e:
                logger.exception(f"{prefix} 💥 Campaign {campaign_id} could not be processed: {e}")
                status, pair_fired = FAILED, False
            outcomes.append(status)
            fired += 1 if pair_fired else 0

        if fired and rule.telegram_notification:
            try:
                self._notify(rule, fired)
            except OperationalError:
                raise
            except Exception as e:
                logger.exception(f"{prefix} ❌ Telegram notification failed: {e}")
        return outcomes

    def _sync_toko(self, db: Session, toko_id: str, cookies: str, reference_date: date):
        service = MetricsSyncService(self.shopee_client, CampaignRepository(db), TokoRepository(db))
        try:
            service.sync_toko(toko_id, cookies, report_date=reference_date)
        except CredentialExpiredError as e:
            logger.warning(f"⚠️ Session expired for toko {toko_id} during sync: {e}")
            self._flag_reauth(db, toko_id)
        except ExternalCallError as e:
            logger.warning(f"⚠️ Metrics sync failed for toko {toko_id}, using stored data: {e}")

    def _flag_reauth(self, db: Session, toko_id: str):
        try:
            TokoRepository(db).mark_needs_reauth(toko_id)
        except OperationalError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"❌ Could not flag toko {toko_id} for re-authentication: {e}")

    def _process_pair(self, rule: RuleDefinition, toko_id: str, campaign_id: str,
                      cookies: Optional[str], run_id: str, reference_date: date) -> Tuple[str, bool]:
        """
        PENDING -> EVALUATING -> SKIPPED | (FIRED -> SUCCESS | FAILED)

        Retourne le statut et si les conditions ont été remplies : un échec
        avant l'évaluation (campagne absente, erreur inattendue) ne compte
        pas comme un déclenchement.
        """
        lock_key = f"inflight:{rule.rule_id}:{toko_id}:{campaign_id}"
        if not self.store.acquire(lock_key, self.lock_ttl):
            logger.info(f"[Rule: {rule.name} ({rule.rule_id})] Campaign {campaign_id} already in flight, skipped")
            return IN_FLIGHT, False

        db = self.session_factory()
        try:
            status, error_message, execution_data = self._evaluate_pair(db, rule, toko_id, campaign_id,
                                                                        cookies, reference_date)
            ExecutionLogRepository(db).create_log(
                rule_id=rule.rule_id,
                campaign_id=campaign_id,
                toko_id=toko_id,
                action_type=rule.action_type,
                status=FAILED if status == FAILED else SUCCESS,
                error_message=error_message,
                execution_data=execution_data,
                run_id=run_id,
            )
            RuleRepository(db).record_outcome(rule.rule_id, status != FAILED)
            return status, execution_data["fired"]
        finally:
            db.close()
            self.store.release(lock_key)

    def _evaluate_pair(self, db: Session, rule: RuleDefinition, toko_id: str, campaign_id: str,
                       cookies: Optional[str], reference_date: date) -> Tuple[str, Optional[str], Dict[str, Any]]:
        prefix = f"[Rule: {rule.name} ({rule.rule_id})]"
        execution_data: Dict[str, Any] = {"action_type": rule.action_type, "skipped": False,
                                          "fired": False, "evaluations": []}

        try:
            campaign = CampaignRepository(db).get_campaign_data(toko_id, campaign_id)
            if campaign is None:
                logger.warning(f"{prefix} Campaign {campaign_id} not found for toko {toko_id}")
                execution_data["error"] = CAMPAIGN_NOT_FOUND
                return FAILED, CAMPAIGN_NOT_FOUND, execution_data

            execution_data["daily_budget"] = campaign.daily_budget
            match = rule_matcher.matches(rule, campaign, reference_date)
            execution_data["evaluations"] = match.evaluations

            if not match.fired:
                logger.info(f"{prefix} ❌ Conditions NOT MET for campaign {campaign_id}")
                execution_data["skipped"] = True
                execution_data["skip_reason"] = SKIP_REASON
                return SKIPPED, None, execution_data

            execution_data["fired"] = True
            logger.info(f"{prefix} ✅ Conditions MET for campaign {campaign_id}, executing {rule.action_type}")
            result = self.action_executor.execute(rule.first_action, campaign, cookies)
        except OperationalError:
            raise
        except CredentialExpiredError as e:
            logger.warning(f"{prefix} 🔑 Session expired for toko {toko_id}: {e}")
            self._flag_reauth(db, toko_id)
            execution_data["error"] = str(e)
            return FAILED, str(e), execution_data
        except ExternalCallError as e:
            logger.error(f"{prefix} ❌ Marketplace call failed for campaign {campaign_id}: {e}")
            execution_data["error"] = str(e)
            return FAILED, str(e), execution_data
        except Exception as e:
            logger.exception(f"{prefix} 💥 Unexpected error on campaign {campaign_id}")
            execution_data["error"] = str(e)
            return FAILED, str(e), execution_data

        execution_data["actionTaken"] = result.action_taken()
        if not result.success:
            logger.error(f"{prefix} ❌ Action {result.action_type} failed for campaign {campaign_id}: "
                         f"{result.error_message}")
            execution_data["error"] = result.error_message
            return FAILED, result.error_message, execution_data

        return SUCCESS, None, execution_data

    def _notify(self, rule: RuleDefinition, fired_count: int):
        if self.notifier is None or not self.notifier.enabled:
            return
        prefix = f"[Rule: {rule.name} ({rule.rule_id})]"
        if rule.user_id is None:
            logger.warning(f"{prefix} ⚠️ Rule has no owner, notification not sent")
            return

        db = self.session_factory()
        try:
            chat_id = UserRepository(db).get_telegram_chat_id(rule.user_id)
        finally:
            db.close()

        if not chat_id:
            logger.warning(f"{prefix} ⚠️ No Telegram chat ID found for user {rule.user_id}, notification not sent")
            return
        if self.notifier.notify_rule(chat_id, rule, fired_count):
            logger.info(f"{prefix} ✅ Telegram notification sent to chat {chat_id}")
