from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from adspilot.repositories.base_repository import BaseRepository
from adspilot.models.user import User


class UserRepository(BaseRepository[User]):
    """Repository pour la gestion des utilisateurs"""

    def __init__(self, db: Session):
        super().__init__(User, db)

    def get_by_username(self, username: str) -> Optional[User]:
        """Récupère un utilisateur par son nom d'utilisateur"""
        try:
            return self.db.query(User).filter(User.username == username).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_telegram_chat_id(self, user_id: int) -> Optional[str]:
        """Chat Telegram du propriétaire d'une règle"""
        try:
            row = self.db.query(User.telegram_chat_id).filter(User.id == user_id).first()
            return row[0] if row else None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
