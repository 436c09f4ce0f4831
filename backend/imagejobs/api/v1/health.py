from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError
from imagejobs.core.errors import UploadError
from imagejobs.services.blob_store import get_blob_store
from imagejobs.services.job_store import JobStore, get_job_store
from imagejobs.services.queue import JobQueue, get_job_queue
from datetime import datetime, timezone

router = APIRouter()

@router.get("/")
def health_check():
    """basic liveness check"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "imagejobs-api"
    }

@router.get("/ready")
def readiness_check(
    store: JobStore = Depends(get_job_store),
    queue: JobQueue = Depends(get_job_queue),
    blob_store=Depends(get_blob_store),
):
    """comprehensive readiness check - verifies all dependencies"""
    checks = {}
    all_healthy = True

    # check database
    try:
        store.list_recent(1)
        checks["database"] = {"status": "healthy", "message": "connected"}
    except SQLAlchemyError as e:
        checks["database"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    # check redis
    try:
        queue.ping()
        checks["redis"] = {"status": "healthy", "message": "connected"}
    except RedisError as e:
        checks["redis"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    # check blob storage
    try:
        checks["storage"] = {"status": "healthy", "message": blob_store.check()}
    except UploadError as e:
        checks["storage"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks
    }

@router.get("/metrics")
def get_metrics(
    store: JobStore = Depends(get_job_store),
    queue: JobQueue = Depends(get_job_queue),
):
    """job counts by status and queue depth"""
    counts = store.count_by_status()

    try:
        queued = queue.depth()
    except RedisError:
        queued = None

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "jobs": counts,
        "queue": {
            "name": queue.queue.name,
            "depth": queued
        }
    }
