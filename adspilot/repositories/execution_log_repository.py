from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from adspilot.core.database import utc_now
from adspilot.models.campaign import Campaign
from adspilot.models.execution_log import RuleExecutionLog
from adspilot.models.toko import Toko
from adspilot.repositories.base_repository import BaseRepository


class ExecutionLogRepository(BaseRepository[RuleExecutionLog]):
    """Repository pour les logs d'exécution des règles"""

    def __init__(self, db: Session):
        super().__init__(RuleExecutionLog, db)

    def create_log(self, rule_id: int, campaign_id: str, toko_id: str, action_type: str,
                   status: str, execution_data: Dict[str, Any], run_id: Optional[str] = None,
                   error_message: Optional[str] = None,
                   executed_at: Optional[datetime] = None) -> RuleExecutionLog:
        """Insère une ligne de log ; chaque insertion est commitée seule"""
        return self.create({
            "rule_id": rule_id,
            "campaign_id": str(campaign_id),
            "toko_id": str(toko_id),
            "action_type": action_type,
            "status": status,
            "error_message": error_message,
            "execution_data": execution_data,
            "run_id": run_id,
            "executed_at": executed_at or utc_now(),
        })

    def get_run_siblings(self, anchor: RuleExecutionLog, window_seconds: int = 10,
                         toko_ids: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """
        Lignes du même passage que `anchor`, triées par campaign_id.

        Toujours limité à la règle de `anchor` : le run_id est partagé par
        toutes les règles d'un tick. Sans run_id (lignes plus anciennes),
        executed_at à +/- `window_seconds`.
        Chaque entrée porte aussi le nom du toko et le titre de la campagne.
        """
        try:
            query = (self.db.query(RuleExecutionLog, Toko.nama_toko, Campaign.title)
                     .outerjoin(Toko, Toko.id_toko == RuleExecutionLog.toko_id)
                     .outerjoin(Campaign, (Campaign.id_toko == RuleExecutionLog.toko_id)
                                & (Campaign.campaign_id == RuleExecutionLog.campaign_id))
                     .filter(RuleExecutionLog.rule_id == anchor.rule_id))

            if anchor.run_id:
                query = query.filter(RuleExecutionLog.run_id == anchor.run_id)
            else:
                window = timedelta(seconds=window_seconds)
                query = query.filter(
                    RuleExecutionLog.executed_at >= anchor.executed_at - window,
                    RuleExecutionLog.executed_at <= anchor.executed_at + window,
                )

            if toko_ids is not None:
                query = query.filter(RuleExecutionLog.toko_id.in_(list(toko_ids)))

            rows = query.order_by(RuleExecutionLog.campaign_id, RuleExecutionLog.id).all()
            return [
                {"log": log, "nama_toko": nama_toko, "campaign_title": title}
                for log, nama_toko, title in rows
            ]
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
