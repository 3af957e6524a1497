from fastapi import APIRouter, Depends
from adspilot.api.v1 import logs, rules
from adspilot.dependencies import get_rule_evaluation_worker
from adspilot.workers.rule_evaluation_worker import RuleEvaluationWorker

router = APIRouter()

router.include_router(logs.router, prefix="/api/v1")
router.include_router(rules.router, prefix="/api/v1")


@router.get("/")
async def root():
    return {
        "message": "AdsPilot Automation API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@router.get("/health")
async def health():
    return {"status": "healthy"}


@router.get("/worker/status")
async def worker_status(worker: RuleEvaluationWorker = Depends(get_rule_evaluation_worker)):
    try:
        has_task = worker._task is not None
        is_healthy = worker.is_healthy()

        return {
            "running": worker.running,
            "healthy": is_healthy,
            "task_exists": has_task,
            "task_done": worker._task.done() if has_task else True,
            "last_run": worker.get_last_run_summary(),
            "status": "healthy" if is_healthy else "unhealthy"
        }

    except Exception as e:
        return {
            "running": False,
            "healthy": False,
            "error": str(e),
            "status": "error"
        }
