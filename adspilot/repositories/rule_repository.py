from datetime import datetime
from typing import List, Optional

from sqlalchemy import Numeric, cast, func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from adspilot.core.database import utc_now
from adspilot.models.rule import Rule
from adspilot.repositories.base_repository import BaseRepository


class RuleRepository(BaseRepository[Rule]):
    """Repository pour les règles d'automatisation"""

    def __init__(self, db: Session):
        super().__init__(Rule, db)

    def get_active_rules(self) -> List[Rule]:
        """Récupère toutes les règles actives, par priorité décroissante"""
        try:
            return (self.db.query(Rule)
                    .filter(Rule.status == "active")
                    .order_by(Rule.priority.desc(), Rule.id)
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def record_outcome(self, rule_id: int, success: bool, executed_at: Optional[datetime] = None):
        """
        Met à jour les compteurs d'exécution en une seule requête.

        Seules les colonnes statistiques sont touchées ; la définition de la
        règle (conditions, actions, affectations) reste inchangée.
        """
        executed_at = executed_at or utc_now()
        new_triggers = Rule.triggers + 1
        new_success = Rule.success_count + (1 if success else 0)
        try:
            (self.db.query(Rule)
             .filter(Rule.id == rule_id)
             .update({
                 Rule.triggers: new_triggers,
                 Rule.success_count: new_success,
                 Rule.error_count: Rule.error_count + (0 if success else 1),
                 Rule.success_rate: func.round(cast(new_success * 100.0 / new_triggers, Numeric), 2),
                 Rule.last_executed_at: executed_at,
             }, synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
