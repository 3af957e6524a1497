import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from adspilot.api.auth import require_permission
from adspilot.api.schemas.logs import LogDetailResponse
from adspilot.config import settings
from adspilot.core.database import get_db
from adspilot.core.exceptions import AccessDeniedError, LogNotFoundError
from adspilot.core.permissions import LOGS_VIEW_ALL, LOGS_VIEW_OWN
from adspilot.models.user import User
from adspilot.services.log_reader import LogReader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs", tags=["logs"])


def get_log_reader(db: Session = Depends(get_db)) -> LogReader:
    return LogReader(db, window_seconds=settings.RUN_GROUPING_WINDOW_SECONDS)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("/detail", response_model=LogDetailResponse)
def get_log_detail(
        log_id: Optional[str] = Query(None, alias="logId"),
        log_reader: LogReader = Depends(get_log_reader),
        current_user: User = Depends(require_permission(LOGS_VIEW_OWN, LOGS_VIEW_ALL))
):
    """Détail d'un passage de règle : narratif des conditions et issue par campagne"""
    if not log_id:
        return _error(status.HTTP_400_BAD_REQUEST, "logId is required")
    try:
        log_id_value = int(log_id)
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "logId must be an integer")

    try:
        data = log_reader.get_log_detail(log_id_value, current_user)
    except AccessDeniedError as e:
        return _error(status.HTTP_403_FORBIDDEN, str(e))
    except LogNotFoundError as e:
        return _error(status.HTTP_404_NOT_FOUND, str(e))
    except Exception:
        logger.exception(f"Error fetching log detail for log {log_id_value}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch log detail")

    return {"success": True, "data": data}
