from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from imagejobs.core.config import settings
from imagejobs.core.errors import EnqueueError, UrlValidationError
from imagejobs.core.logging_config import get_logger
from imagejobs.models import JobCreate
from imagejobs.services.job_store import JobStore, get_job_store
from imagejobs.services.queue import JobQueue, get_job_queue
from imagejobs.services.submission import JobSubmissionService

logger = get_logger(__name__)

router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def get_submission_service(
    store: JobStore = Depends(get_job_store),
    queue: JobQueue = Depends(get_job_queue),
) -> JobSubmissionService:
    return JobSubmissionService(store, queue)


@router.post("")
def create_job(request: JobCreate, service: JobSubmissionService = Depends(get_submission_service)):
    """add an image to the processing queue with transformations"""
    try:
        job = service.submit(request.url, request.transformations)
    except UrlValidationError as e:
        return error_response(400, str(e))
    except SQLAlchemyError as e:
        # nothing was enqueued, the record never committed
        logger.error(f"error persisting job: {e}")
        return error_response(500, "Error creating job")
    except EnqueueError as e:
        logger.error(f"error adding job to the queue: {e}")
        return error_response(500, "Error adding job to the queue")
    return job.to_wire()


@router.get("")
def list_jobs(
    limit: int = Query(default=settings.LIST_DEFAULT_LIMIT, ge=1, le=settings.LIST_MAX_LIMIT),
    store: JobStore = Depends(get_job_store),
):
    """most recent jobs, newest first"""
    return {"jobs": [job.to_wire() for job in store.list_recent(limit)]}


@router.get("/{job_id}")
def get_job(job_id: str, store: JobStore = Depends(get_job_store)):
    job = store.get(job_id)
    if not job:
        return error_response(404, "Job not found")
    return job.to_wire()
