from typing import Optional, Set

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from adspilot.models.toko import Toko
from adspilot.repositories.base_repository import BaseRepository


class TokoRepository(BaseRepository[Toko]):
    """Repository pour le registre des tokos (cookies, statut de session)"""

    def __init__(self, db: Session):
        super().__init__(Toko, db)

    def get_credentials(self, toko_id: str) -> Optional[str]:
        """Cookies du toko si la session est active, sinon None"""
        try:
            toko = (self.db.query(Toko)
                    .filter(Toko.id_toko == str(toko_id), Toko.status_cookies == "aktif")
                    .first())
            return toko.cookies if toko and toko.cookies else None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def mark_needs_reauth(self, toko_id: str) -> bool:
        """Passe la session du toko en `expired`"""
        try:
            updated = (self.db.query(Toko)
                       .filter(Toko.id_toko == str(toko_id))
                       .update({Toko.status_cookies: "expired"}, synchronize_session=False))
            self.db.commit()
            return bool(updated)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update_saldo(self, toko_id: str, saldo: float):
        try:
            (self.db.query(Toko)
             .filter(Toko.id_toko == str(toko_id))
             .update({Toko.saldo: saldo}, synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_allowed_toko_ids(self, user_id: int) -> Set[str]:
        """Tokos appartenant à l'utilisateur"""
        try:
            rows = self.db.query(Toko.id_toko).filter(Toko.user_id == user_id).all()
            return {row[0] for row in rows}
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
