from fastapi import HTTPException, status
from jose import JWTError, jwt
from adspilot.repositories.user_repository import UserRepository
from adspilot.models.user import User, UserRole
from adspilot.api.schemas.auth import TokenData


class AuthService:
    """
    Résolution du porteur d'un token JWT.

    L'émission des tokens (login) est assurée par le portail ; ce service ne
    fait que vérifier la signature et retrouver l'utilisateur.
    """

    def __init__(self, user_repository: UserRepository, secret_key: str, algorithm: str = "HS256"):
        self.user_repository = user_repository
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify_token(self, token: str) -> TokenData:
        """Vérifie et décode un token JWT"""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            username: str = payload.get("sub")
            role: str = payload.get("role")

            if username is None:
                raise credentials_exception

            token_data = TokenData(username=username, role=UserRole(role) if role else None)
        except (JWTError, ValueError):
            raise credentials_exception

        return token_data

    def get_current_user(self, token: str) -> User:
        """Récupère l'utilisateur courant à partir du token"""
        token_data = self.verify_token(token)
        user = self.user_repository.get_by_username(token_data.username)

        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Inactive user"
            )

        return user
