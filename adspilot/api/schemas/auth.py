from pydantic import BaseModel
from typing import Optional
from adspilot.models.user import UserRole


class TokenData(BaseModel):
    username: Optional[str] = None
    role: Optional[UserRole] = None
