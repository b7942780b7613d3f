"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront import __version__
from storefront.db.database import get_db
from storefront.utils.clock import utc_now


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, db: Session):
        self._db = db

    def check_database(self) -> str:
        try:
            self._db.execute(text("SELECT 1"))
            return "healthy"
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return "unhealthy"

    def get_health(self) -> dict:
        db_status = self.check_database()
        overall = "healthy" if db_status == "healthy" else "degraded"

        return {
            "success": True,
            "message": "Storefront API is running",
            "timestamp": utc_now().isoformat(),
            "version": __version__,
            "status": overall,
            "components": {
                "api": "healthy",
                "database": db_status,
            },
        }


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Returns API and database status.
    """
    controller = HealthController(db)
    return controller.get_health()


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness probe: the database must answer."""
    return {"ready": HealthController(db).check_database() == "healthy"}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
