from typing import Callable, List

from redis.exceptions import RedisError

from imagejobs.core.errors import EnqueueError
from imagejobs.core.logging_config import get_logger
from imagejobs.models import Job
from imagejobs.models.jobs import format_timestamp, utc_now
from imagejobs.models.transforms import dump_transformations
from imagejobs.services.image_fetcher import check_is_image
from imagejobs.services.job_store import JobStore
from imagejobs.services.queue import JobQueue

logger = get_logger(__name__)


class JobSubmissionService:
    """turns a validated request into a persisted pending job and one queued message"""

    def __init__(self, store: JobStore, queue: JobQueue, url_checker: Callable[[str], None] = check_is_image):
        self.store = store
        self.queue = queue
        self.url_checker = url_checker

    def submit(self, url: str, transformations: List) -> Job:
        """
        create and enqueue a job, returns the pending record without waiting for processing

        the record is committed before the message is published so a worker always
        finds the record it is told to update. if publishing fails the record stays
        pending and EnqueueError is raised, the orphan is not retried here
        """
        # raises UrlValidationError before anything is persisted
        self.url_checker(url)

        job = self.store.create(Job(url=url))
        logger.info(f"created job {job.id} for {url}")

        payload = {
            "url": url,
            "transformations": dump_transformations(transformations),
            "createdAt": format_timestamp(utc_now()),
        }
        try:
            self.queue.enqueue_image_job(job.id, payload)
        except RedisError as e:
            logger.error(f"job {job.id} persisted but not enqueued, left pending: {e}")
            raise EnqueueError(f"Error adding job {job.id} to the queue") from e

        return job
