from pydantic import BaseModel
from typing import List, Optional


class RunSummary(BaseModel):
    """Compteurs d'un tick du moteur"""
    rules_loaded: int = 0
    rules_scheduled: int = 0
    rules_evaluated: int = 0
    configuration_errors: int = 0
    success: int = 0
    skipped: int = 0
    failed: int = 0
    in_flight: int = 0


class EvaluationResult(BaseModel):
    run_id: Optional[str] = None
    timestamp: Optional[str] = None
    summary: RunSummary
    duration_seconds: float = 0
    aborted: bool = False
    errors: List[str] = []
