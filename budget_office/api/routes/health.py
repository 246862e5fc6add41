from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_office.core.config import get_settings
from budget_office.core.logging import get_logger
from budget_office.db.dependencies import get_db_session

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
def health(db: Session = Depends(get_db_session)) -> dict[str, str]:
    """Liveness plus a database round trip."""

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("health.database_unreachable", extra={"context": {"error": str(exc)}})
        database = "unavailable"
    else:
        database = "ok"

    return {"status": "ok", "app": get_settings().app_name, "database": database}
