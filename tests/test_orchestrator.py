from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from adspilot.core.cache import InMemoryStore
from adspilot.core.exceptions import CredentialExpiredError, ExternalCallError
from adspilot.models.execution_log import RuleExecutionLog
from adspilot.models.toko import Toko
from adspilot.repositories.toko_repository import TokoRepository
from adspilot.workers.rule_evaluation_worker import CAMPAIGN_NOT_FOUND, SKIP_REASON, RuleEvaluationWorker
from tests.conftest import NOW, TODAY


@pytest.fixture
def worker(session_factory, shopee_client, store):
    # Un seul thread : sqlite fichier n'accepte qu'un écrivain à la fois
    return RuleEvaluationWorker(session_factory, shopee_client, store, max_workers=1)


def _logs(db):
    db.expire_all()
    return db.query(RuleExecutionLog).order_by(RuleExecutionLog.id).all()


def test_fired_rule_executes_action_and_logs_success(worker, db, shopee_client, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    rule = make_rule()

    results = worker.run_cycle(NOW)

    assert results["summary"]["success"] == 1
    assert shopee_client.calls[0]["new_budget"] == 6000000000

    [log] = _logs(db)
    assert log.status == "success"
    assert log.action_type == "add_budget"
    assert log.run_id == results["run_id"]
    assert log.execution_data["skipped"] is False
    assert log.execution_data["actionTaken"] == {"type": "add_budget", "before": 50000, "after": 60000}

    db.refresh(rule)
    assert (rule.triggers, rule.success_count, rule.error_count) == (1, 1, 0)
    assert rule.success_rate == 100
    assert rule.last_executed_at is not None


def test_unmet_conditions_are_logged_as_skipped(worker, db, shopee_client, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=1.0, cost=50000)
    rule = make_rule()

    results = worker.run_cycle(NOW)

    assert results["summary"]["skipped"] == 1
    assert shopee_client.calls == []
    [log] = _logs(db)
    assert log.status == "success"
    assert log.execution_data["skipped"] is True
    assert log.execution_data["skip_reason"] == SKIP_REASON
    assert [e["met"] for e in log.execution_data["evaluations"]] == [False, True]

    db.refresh(rule)
    assert rule.success_count == 1


def test_one_failing_campaign_does_not_block_the_others(worker, db, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(campaign_id="111", ctr=3.0, cost=50000)
    rule = make_rule(assignments={"toko-1": ["999", "111"]})

    results = worker.run_cycle(NOW)

    assert results["summary"]["failed"] == 1
    assert results["summary"]["success"] == 1
    logs = {log.campaign_id: log for log in _logs(db)}
    assert logs["999"].status == "failed"
    assert logs["999"].error_message == CAMPAIGN_NOT_FOUND
    assert logs["111"].status == "success"
    assert len({log.run_id for log in logs.values()}) == 1

    db.refresh(rule)
    assert (rule.triggers, rule.success_count, rule.error_count) == (2, 1, 1)
    assert rule.success_rate == 50


def test_expired_session_flags_toko(worker, db, shopee_client, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()
    shopee_client.error = CredentialExpiredError("toko-1", status_code=401)

    results = worker.run_cycle(NOW)

    assert results["summary"]["failed"] == 1
    [log] = _logs(db)
    assert log.status == "failed"
    toko = db.query(Toko).filter(Toko.id_toko == "toko-1").first()
    assert toko.status_cookies == "expired"


def test_marketplace_error_fails_pair_without_flagging_toko(worker, db, shopee_client, make_toko,
                                                            make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()
    shopee_client.error = ExternalCallError("Shopee API timeout after 60s")

    worker.run_cycle(NOW)

    [log] = _logs(db)
    assert log.status == "failed"
    assert log.error_message == "Shopee API timeout after 60s"
    assert db.query(Toko).first().status_cookies == "aktif"


def test_only_first_action_is_executed(worker, shopee_client, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule(actions=[{"type": "pause_campaign"}, {"type": "add_budget", "amount": 10000}])

    worker.run_cycle(NOW)

    assert [call["action"] for call in shopee_client.calls] == ["pause"]


def test_all_rules_of_a_tick_share_run_id(worker, db, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(campaign_id="111", ctr=3.0, cost=50000)
    make_campaign(campaign_id="222", ctr=1.0, cost=50000)
    make_rule(name="A", assignments={"toko-1": ["111", "222"]})
    make_rule(name="B", assignments={"toko-1": ["222"]})

    first = worker.run_cycle(NOW)

    logs = _logs(db)
    assert len(logs) == 3
    assert {log.run_id for log in logs} == {first["run_id"]}


def test_pair_already_in_flight_is_skipped_without_log(worker, db, store, shopee_client, make_toko,
                                                       make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    rule = make_rule()
    store.acquire(f"inflight:{rule.id}:toko-1:111", 60)

    results = worker.run_cycle(NOW)

    assert results["summary"]["in_flight"] == 1
    assert _logs(db) == []
    assert shopee_client.calls == []


def test_invalid_rule_configuration_is_counted_and_skipped(worker, db, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule(conditions="not json{")

    results = worker.run_cycle(NOW)

    assert results["summary"]["configuration_errors"] == 1
    assert results["summary"]["rules_evaluated"] == 0
    assert _logs(db) == []


def test_paused_rules_are_not_loaded(worker, db, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule(status="paused")

    results = worker.run_cycle(NOW)

    assert results["summary"]["rules_loaded"] == 0
    assert _logs(db) == []


def test_missing_cookies_fail_only_when_action_needs_them(worker, db, make_toko, make_campaign, make_rule):
    make_toko(status_cookies="expired")
    make_campaign(ctr=3.0, cost=50000)
    make_rule()

    worker.run_cycle(NOW)

    [log] = _logs(db)
    assert log.status == "failed"
    assert "No active cookies" in log.error_message


def test_summary_is_kept_for_status_endpoint(worker, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()

    results = worker.run_cycle(NOW)

    assert worker.get_last_run_summary() is results
    assert results["aborted"] is False
    assert results["summary"]["rules_evaluated"] == 1


def test_unreachable_database_aborts_tick(tmp_path, shopee_client, store):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nope.db'}")
    worker = RuleEvaluationWorker(sessionmaker(bind=engine), shopee_client, store, max_workers=1)

    results = worker.run_cycle(NOW)

    assert results["aborted"] is True
    assert results["errors"]


@pytest.mark.asyncio
async def test_evaluate_all_rules_runs_off_the_event_loop(worker, make_toko, make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()

    results = await worker.evaluate_all_rules()

    assert results["run_id"]
    assert results["summary"]["rules_loaded"] == 1


class RecordingNotifier:
    enabled = True

    def __init__(self):
        self.sent = []

    def notify_rule(self, chat_id, rule, fired_count):
        self.sent.append((chat_id, rule.rule_id, fired_count))
        return True


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def notifying_worker(session_factory, shopee_client, store, notifier):
    return RuleEvaluationWorker(session_factory, shopee_client, store, notifier=notifier, max_workers=1)


def test_notification_counts_only_fired_campaigns(notifying_worker, notifier, make_user, make_toko,
                                                  make_campaign, make_rule):
    owner = make_user("owner", telegram_chat_id="42")
    make_toko()
    make_campaign(campaign_id="111", ctr=3.0, cost=50000)
    make_campaign(campaign_id="222", ctr=1.0, cost=50000)
    rule = make_rule(user_id=owner.id, telegram_notification=True,
                     assignments={"toko-1": ["111", "222", "999"]})

    results = notifying_worker.run_cycle(NOW)

    assert results["summary"]["success"] == 1
    assert results["summary"]["skipped"] == 1
    assert results["summary"]["failed"] == 1
    assert notifier.sent == [("42", rule.id, 1)]


def test_no_notification_when_only_missing_campaigns_fail(notifying_worker, notifier, shopee_client, make_user,
                                                          make_toko, make_rule):
    owner = make_user("owner", telegram_chat_id="42")
    make_toko()
    make_rule(user_id=owner.id, telegram_notification=True, assignments={"toko-1": ["999"]})

    results = notifying_worker.run_cycle(NOW)

    assert results["summary"]["failed"] == 1
    assert shopee_client.calls == []
    assert notifier.sent == []


def test_fired_pair_with_failed_action_still_notifies(notifying_worker, notifier, shopee_client, make_user,
                                                      make_toko, make_campaign, make_rule):
    owner = make_user("owner", telegram_chat_id="42")
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule(user_id=owner.id, telegram_notification=True)
    shopee_client.error = ExternalCallError("Shopee API timeout after 60s")

    notifying_worker.run_cycle(NOW)

    assert [sent[2] for sent in notifier.sent] == [1]


class BrokenLockStore(InMemoryStore):
    """Store dont la pose de verrou échoue pour un préfixe donné"""

    def __init__(self, broken_prefix):
        super().__init__()
        self.broken_prefix = broken_prefix

    def acquire(self, key, ttl_seconds):
        if key.startswith(self.broken_prefix):
            raise RuntimeError("lock backend unavailable")
        return super().acquire(key, ttl_seconds)


def test_unexpected_pair_error_does_not_stop_next_rule(session_factory, db, shopee_client, make_toko,
                                                       make_campaign, make_rule):
    make_toko()
    make_campaign(campaign_id="111", ctr=3.0, cost=50000)
    make_campaign(campaign_id="222", ctr=3.0, cost=50000)
    first = make_rule(name="A", assignments={"toko-1": ["111"]})
    second = make_rule(name="B", assignments={"toko-1": ["222"]})
    store = BrokenLockStore(f"inflight:{first.id}:")
    worker = RuleEvaluationWorker(session_factory, shopee_client, store, max_workers=1)

    results = worker.run_cycle(NOW)

    assert results["aborted"] is False
    assert results["summary"]["rules_evaluated"] == 2
    assert results["summary"]["failed"] == 1
    assert results["summary"]["success"] == 1
    assert worker.get_last_run_summary() is results
    [log] = _logs(db)
    assert (log.rule_id, log.campaign_id, log.status) == (second.id, "222", "success")


def test_failed_reauth_flag_still_writes_log(worker, db, shopee_client, monkeypatch, make_toko,
                                             make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()
    shopee_client.error = CredentialExpiredError("toko-1", status_code=401)

    def broken_mark(self, toko_id):
        raise SQLAlchemyError("constraint violated")

    monkeypatch.setattr(TokoRepository, "mark_needs_reauth", broken_mark)

    results = worker.run_cycle(NOW)

    assert results["summary"]["failed"] == 1
    [log] = _logs(db)
    assert log.status == "failed"
    assert db.query(Toko).first().status_cookies == "aktif"


def test_sync_before_run_uses_local_calendar_day(session_factory, shopee_client, store, make_toko,
                                                 make_campaign, make_rule):
    make_toko()
    make_campaign(ctr=3.0, cost=50000)
    make_rule()
    worker = RuleEvaluationWorker(session_factory, shopee_client, store, max_workers=1, sync_before_run=True)

    # 18:00 UTC la veille = 01:00 le 17 à Jakarta
    results = worker.run_cycle(datetime(2026, 10, 16, 18, 0, 0))

    assert shopee_client.fetches == [{"toko_id": "toko-1", "report_date": TODAY}]
    assert results["summary"]["success"] == 1
