from typing import Optional
from fastapi import Request
from redis import Redis
from rq import Queue, Retry
from rq.job import Job as RQJob
from imagejobs.core.config import settings
from imagejobs.core.logging_config import get_logger

logger = get_logger(__name__)

# resolved by the rq worker at execution time
PROCESS_IMAGE_JOB = "imagejobs.worker.process_image_job"


class JobQueue:
    """rq queue carrying image jobs, keyed by job id"""

    def __init__(self, redis_conn: Redis, name: Optional[str] = None):
        self.redis_conn = redis_conn
        self.queue = Queue(name or settings.QUEUE_NAME, connection=redis_conn)

    @classmethod
    def from_url(cls, redis_url: str, name: Optional[str] = None) -> "JobQueue":
        return cls(Redis.from_url(redis_url), name)

    def _retry_policy(self) -> Optional[Retry]:
        if settings.JOB_MAX_RETRIES <= 0:
            return None
        return Retry(max=settings.JOB_MAX_RETRIES, interval=settings.JOB_RETRY_INTERVALS)

    def enqueue_image_job(self, job_id: str, payload: dict) -> RQJob:
        """enqueue a job payload, a job id that is already queued is not enqueued twice"""
        if RQJob.exists(job_id, connection=self.redis_conn):
            logger.info(f"job {job_id} already enqueued, skipping")
            return RQJob.fetch(job_id, connection=self.redis_conn)

        rq_job = self.queue.enqueue(
            PROCESS_IMAGE_JOB,
            payload,
            job_id=job_id,
            job_timeout=settings.JOB_TIMEOUT_SECONDS,
            result_ttl=settings.RESULT_TTL_SECONDS,
            failure_ttl=settings.FAILURE_TTL_SECONDS,
            retry=self._retry_policy(),
            description=f"process image {job_id}",
        )
        logger.info(f"enqueued job {job_id} on {self.queue.name}")
        return rq_job

    def depth(self) -> int:
        return self.queue.count

    def ping(self) -> bool:
        return self.redis_conn.ping()

    def close(self):
        self.redis_conn.close()


def get_job_queue(request: Request) -> JobQueue:
    """fastapi dependency, the queue handle is created once at app startup"""
    return request.app.state.job_queue
