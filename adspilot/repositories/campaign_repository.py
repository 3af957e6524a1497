from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from adspilot.models.campaign import Campaign, CampaignReport
from adspilot.models.toko import Toko
from adspilot.repositories.base_repository import BaseRepository
from adspilot.services.metric_resolver import ADDITIVE_FIELDS, DERIVED_FIELDS, CampaignData

REPORT_FIELDS = ADDITIVE_FIELDS + DERIVED_FIELDS


class CampaignRepository(BaseRepository[Campaign]):
    """Repository pour le Metrics Store (data_produk + data_produk_report)"""

    def __init__(self, db: Session):
        super().__init__(Campaign, db)

    def get_campaign(self, toko_id: str, campaign_id: str) -> Optional[Campaign]:
        try:
            return (self.db.query(Campaign)
                    .filter(Campaign.id_toko == str(toko_id), Campaign.campaign_id == str(campaign_id))
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_campaign_data(self, toko_id: str, campaign_id: str) -> Optional[CampaignData]:
        """
        Charge la campagne et tous ses rapports journaliers.

        Les valeurs NULL sont ramenées à 0 (COALESCE), comme le saldo du toko.
        """
        try:
            row = (self.db.query(Campaign.campaign_id, Campaign.id_toko, Campaign.title, Campaign.status,
                                 func.coalesce(Campaign.daily_budget, 0),
                                 func.coalesce(Toko.saldo, 0))
                   .outerjoin(Toko, Toko.id_toko == Campaign.id_toko)
                   .filter(Campaign.id_toko == str(toko_id), Campaign.campaign_id == str(campaign_id))
                   .first())
            if row is None:
                return None

            columns = [func.coalesce(getattr(CampaignReport, name), 0) for name in REPORT_FIELDS]
            reports = (self.db.query(CampaignReport.report_date, *columns)
                       .filter(CampaignReport.id_toko == str(toko_id),
                               CampaignReport.campaign_id == str(campaign_id))
                       .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        campaign_id_value, toko_id_value, title, status, daily_budget, saldo = row
        return CampaignData(
            campaign_id=campaign_id_value,
            toko_id=toko_id_value,
            title=title or "",
            status=status,
            daily_budget=daily_budget,
            saldo=saldo,
            reports={
                report[0]: dict(zip(REPORT_FIELDS, report[1:]))
                for report in reports
            },
        )

    def upsert_campaign(self, toko_id: str, campaign_id: str, title: str,
                        status: Optional[str], daily_budget: float) -> Campaign:
        try:
            campaign = self.get_campaign(toko_id, campaign_id)
            if campaign is None:
                campaign = Campaign(id_toko=str(toko_id), campaign_id=str(campaign_id))
                self.db.add(campaign)
            campaign.title = title
            campaign.status = status
            campaign.daily_budget = daily_budget
            self.db.commit()
            return campaign
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def upsert_report(self, toko_id: str, campaign_id: str, report_date: date,
                      metrics: Dict[str, Any]) -> CampaignReport:
        try:
            report = (self.db.query(CampaignReport)
                      .filter(CampaignReport.id_toko == str(toko_id),
                              CampaignReport.campaign_id == str(campaign_id),
                              CampaignReport.report_date == report_date)
                      .first())
            if report is None:
                report = CampaignReport(id_toko=str(toko_id), campaign_id=str(campaign_id),
                                        report_date=report_date)
                self.db.add(report)
            for name in REPORT_FIELDS:
                if name in metrics:
                    setattr(report, name, metrics[name])
            self.db.commit()
            return report
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
