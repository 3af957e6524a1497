from .base import BaseModel
from .user import User, UserRole
from .toko import Toko
from .campaign import Campaign, CampaignReport
from .rule import Rule
from .execution_log import RuleExecutionLog

__all__ = ["BaseModel", "User", "UserRole", "Toko", "Campaign", "CampaignReport", "Rule", "RuleExecutionLog"]
