from sqlalchemy import Column, String, Boolean, Text, JSON, Integer, Float, DateTime, ForeignKey
from .base import BaseModel


class Rule(BaseModel):
    __tablename__ = "data_rules"

    # Identification
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(100))

    # Configuration (JSON décodé par adspilot.services.rule_definitions)
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    campaign_assignments = Column(JSON, nullable=False, default=dict)  # {id_toko: [campaign_id, ...]}

    # Statut
    status = Column(String(20), default="active", nullable=False, index=True)  # active, paused

    # Planification
    execution_mode = Column(String(20), default="continuous", nullable=False)  # continuous, interval, specific, auto
    selected_interval = Column(Integer)  # secondes
    selected_times = Column(JSON)
    selected_days = Column(JSON)
    priority = Column(Integer, default=0, nullable=False)
    telegram_notification = Column(Boolean, default=False, nullable=False)

    # Statistiques
    triggers = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    success_rate = Column(Float, default=0.0, nullable=False)
    last_executed_at = Column(DateTime)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<Rule(id={self.id}, name='{self.name}', status='{self.status}')>"
