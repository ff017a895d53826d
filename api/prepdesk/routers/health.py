from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime
import platform
import psutil
import logging

from ..config.database import get_db
from ..config.settings import ENV, API_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    """Check database connectivity and process resources"""
    try:
        db.execute(text("SELECT 1"))
        database = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")
        database = {"status": "unhealthy", "error": str(e)}

    memory = psutil.virtual_memory()
    process = psutil.Process()
    body = {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "timestamp": datetime.now().isoformat(),
        "environment": ENV,
        "version": API_VERSION,
        "python_version": platform.python_version(),
        "database": database,
        "memory": {
            "system_percent": f"{memory.percent}%",
            "process_rss": f"{process.memory_info().rss / (1024**2):.2f} MB",
        },
    }
    return JSONResponse(content=body, status_code=200 if body["status"] == "healthy" else 503)
