from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey, Index
from adspilot.core.database import utc_now
from .base import BaseModel


class RuleExecutionLog(BaseModel):
    __tablename__ = "rule_execution_logs"

    rule_id = Column(Integer, ForeignKey("data_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_id = Column(String(64), nullable=False)
    toko_id = Column(String(100), nullable=False, index=True)
    action_type = Column(String(50))
    status = Column(String(20), nullable=False)  # success, failed

    # Erreurs
    error_message = Column(Text)

    # {skipped, evaluations: [...], actionTaken?, ...}
    execution_data = Column(JSON)

    # Regroupement d'un même passage ; NULL pour les lignes antérieures
    run_id = Column(String(36), index=True)
    executed_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_rule_execution_logs_rule_executed", "rule_id", "executed_at"),
    )
