from pydantic import BaseModel
from typing import Any, List, Optional


class ConditionResult(BaseModel):
    metric: str
    operator: str
    value: Any
    actualValue: Any
    met: bool


class ActionDescription(BaseModel):
    type: str
    description: str


class CampaignDetail(BaseModel):
    """Issue d'une campagne dans un passage de règle"""
    campaignId: str
    campaignName: str
    tokoId: str
    tokoName: str
    status: str  # success, skipped, failed
    conditionResults: List[ConditionResult]
    action: Optional[ActionDescription] = None
    message: str


class LogDetail(BaseModel):
    ruleId: int
    ruleName: str
    ruleDescription: str
    category: str
    conditions: str
    campaignDetails: List[CampaignDetail]


class LogDetailResponse(BaseModel):
    success: bool = True
    data: LogDetail
