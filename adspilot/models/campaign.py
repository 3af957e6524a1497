from sqlalchemy import Column, String, Float, Date, UniqueConstraint
from .base import BaseModel


class Campaign(BaseModel):
    __tablename__ = "data_produk"

    id_toko = Column(String(100), nullable=False, index=True)
    campaign_id = Column(String(64), nullable=False, index=True)
    title = Column(String(500))
    status = Column(String(50))
    daily_budget = Column(Float)  # rupiah, déjà normalisé

    __table_args__ = (
        UniqueConstraint("id_toko", "campaign_id", name="uq_data_produk_toko_campaign"),
    )


class CampaignReport(BaseModel):
    __tablename__ = "data_produk_report"

    id_toko = Column(String(100), nullable=False, index=True)
    campaign_id = Column(String(64), nullable=False, index=True)
    report_date = Column(Date, nullable=False)

    # Compteurs
    click = Column(Float)
    impression = Column(Float)
    view = Column(Float)
    broad_order = Column(Float)

    # Montants (rupiah)
    cost = Column(Float)
    broad_gmv = Column(Float)
    cpc = Column(Float)
    cpm = Column(Float)

    # Ratios
    ctr = Column(Float)
    broad_roi = Column(Float)

    __table_args__ = (
        UniqueConstraint("id_toko", "campaign_id", "report_date", name="uq_report_toko_campaign_date"),
    )
