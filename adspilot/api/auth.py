from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from adspilot.core.database import get_db
from adspilot.core.permissions import has_permission
from adspilot.repositories.user_repository import UserRepository
from adspilot.services.auth_service import AuthService
from adspilot.models.user import User
from adspilot.config import settings

# Sécurité Bearer Token
security = HTTPBearer()


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    """Factory pour le repository des utilisateurs"""
    return UserRepository(db)


def get_auth_service(user_repo: UserRepository = Depends(get_user_repository)) -> AuthService:
    """Factory pour le service d'authentification"""
    return AuthService(
        user_repository=user_repo,
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """Récupère l'utilisateur courant à partir du token"""
    return auth_service.get_current_user(credentials.credentials)


def require_permission(*permissions: str):
    """Dépendance : l'utilisateur doit porter au moins une des permissions"""
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not any(has_permission(current_user, p) for p in permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        return current_user
    return checker
