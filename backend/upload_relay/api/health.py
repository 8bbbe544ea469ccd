"""
Health check endpoint.
Verifies database connectivity and reports storage configuration.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from upload_relay.database import get_db
from upload_relay.schemas.upload import ErrorResponse
from upload_relay.storage.s3_client import get_s3_client

router = APIRouter()


@router.get("")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.
    Returns status of the ledger database and the storage client.
    An unreachable database answers 503 in the error envelope.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "storage": "configured" if get_s3_client().is_configured else "not_configured"
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        body = ErrorResponse(message="Service unhealthy", error="ServiceUnhealthy")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={**body.model_dump(), "data": health_status}
        )

    return health_status
