from fastapi import APIRouter, Depends

from adspilot.api.auth import require_permission
from adspilot.api.schemas.rules import EvaluationResult
from adspilot.core.permissions import RULES_EXECUTE_ALL
from adspilot.dependencies import get_rule_evaluation_worker
from adspilot.models.user import User
from adspilot.workers.rule_evaluation_worker import RuleEvaluationWorker

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post("/evaluate", response_model=EvaluationResult)
async def trigger_evaluation(
        worker: RuleEvaluationWorker = Depends(get_rule_evaluation_worker),
        current_user: User = Depends(require_permission(RULES_EXECUTE_ALL))
):
    """Déclenche un tick immédiat et retourne son résumé"""
    return await worker.evaluate_all_rules()
