from datetime import date, datetime

import pytest

from adspilot.core.cache import InMemoryStore
from adspilot.core.database import db_manager
from adspilot.core.exceptions import CredentialExpiredError
from adspilot.models.campaign import Campaign, CampaignReport
from adspilot.models.execution_log import RuleExecutionLog
from adspilot.models.rule import Rule
from adspilot.models.toko import Toko
from adspilot.models.user import User, UserRole

# 2026-10-17 03:00 UTC = 10:00 à Jakarta (samedi)
NOW = datetime(2026, 10, 17, 3, 0, 0)
TODAY = date(2026, 10, 17)


class FakeShopeeClient:
    """Double du client Shopee : enregistre les appels `manage_ads` et les synchronisations"""

    def __init__(self):
        self.calls = []
        self.fetches = []
        self.response = {"success": True, "message": "ok", "data": {}}
        self.error = None

    def manage_ads(self, toko_id, cookies, action, campaign_id, new_budget=None):
        self.calls.append({
            "toko_id": toko_id,
            "cookies": cookies,
            "action": action,
            "campaign_id": campaign_id,
            "new_budget": new_budget,
        })
        if not cookies:
            raise CredentialExpiredError(toko_id, f"No active cookies found for toko {toko_id}")
        if self.error is not None:
            raise self.error
        return self.response

    def fetch_campaigns(self, toko_id, cookies, report_date=None):
        self.fetches.append({"toko_id": toko_id, "report_date": report_date})
        return []

    def get_saldo(self, toko_id, cookies):
        return 0


@pytest.fixture
def session_factory(tmp_path):
    db_manager.configure(f"sqlite:///{tmp_path / 'adspilot.db'}")
    db_manager.create_tables()
    yield db_manager.session_factory
    db_manager.drop_tables()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def shopee_client():
    return FakeShopeeClient()


@pytest.fixture
def make_user(db):
    def _make(username="owner", role=UserRole.USER, telegram_chat_id=None):
        user = User(username=username, email=f"{username}@example.com", role=role,
                    telegram_chat_id=telegram_chat_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_toko(db):
    def _make(id_toko="toko-1", user_id=None, nama_toko="Toko Satu", cookies="SPC_EC=abc; SPC_U=1",
              status_cookies="aktif", saldo=500000):
        toko = Toko(id_toko=id_toko, user_id=user_id, nama_toko=nama_toko, cookies=cookies,
                    status_cookies=status_cookies, saldo=saldo)
        db.add(toko)
        db.commit()
        db.refresh(toko)
        return toko
    return _make


@pytest.fixture
def make_campaign(db):
    def _make(campaign_id="111", id_toko="toko-1", title="Kaos Polos", daily_budget=50000,
              report_date=TODAY, **metrics):
        campaign = Campaign(id_toko=id_toko, campaign_id=campaign_id, title=title,
                            status="ongoing", daily_budget=daily_budget)
        db.add(campaign)
        if metrics:
            db.add(CampaignReport(id_toko=id_toko, campaign_id=campaign_id,
                                  report_date=report_date, **metrics))
        db.commit()
        return campaign
    return _make


@pytest.fixture
def make_rule(db):
    def _make(name="Naikkan budget CTR tinggi", conditions=None, actions=None, assignments=None,
              user_id=None, **kwargs):
        rule = Rule(
            name=name,
            description=kwargs.pop("description", "Tambah budget saat CTR bagus"),
            category=kwargs.pop("category", "budget"),
            user_id=user_id,
            conditions=conditions if conditions is not None else [{
                "conditions": [
                    {"metric": "ctr", "operator": ">", "value": 2},
                    {"metric": "cost", "operator": "<", "value": 100000},
                ],
            }],
            actions=actions if actions is not None else [{"type": "add_budget", "amount": 10000}],
            campaign_assignments=assignments if assignments is not None else {"toko-1": ["111"]},
            **kwargs,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule
    return _make


@pytest.fixture
def make_log(db):
    def _make(rule_id, campaign_id="111", toko_id="toko-1", status="success", execution_data=None,
              run_id=None, error_message=None, executed_at=NOW, action_type="add_budget"):
        log = RuleExecutionLog(rule_id=rule_id, campaign_id=campaign_id, toko_id=toko_id,
                               action_type=action_type, status=status, error_message=error_message,
                               execution_data=execution_data or {}, run_id=run_id,
                               executed_at=executed_at)
        db.add(log)
        db.commit()
        db.refresh(log)
        return log
    return _make
