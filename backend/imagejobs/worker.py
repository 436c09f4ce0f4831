from typing import Callable, Optional

from redis import Redis
from rq import Queue, Worker, get_current_job

from imagejobs.core.config import settings
from imagejobs.core.db import engine, init_db
from imagejobs.core.errors import JobAlreadyFinishedError, JobNotFoundError, UploadError, handle_worker_error, retry_with_backoff
from imagejobs.core.logging_config import get_logger
from imagejobs.models import Job, JobStatus
from imagejobs.models.transforms import parse_transformations
from imagejobs.services.blob_store import get_blob_store, result_path
from imagejobs.services.event_publisher import JobEventPublisher
from imagejobs.services.image_fetcher import download_image
from imagejobs.services.image_pipeline import OUTPUT_CONTENT_TYPE, apply_transformations
from imagejobs.services.job_store import DOWNLOADED_PROGRESS, TRANSFORMED_PROGRESS, JobStore

logger = get_logger(__name__)


def error_message(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class JobProcessor:
    """
    drives one job through download -> transform -> upload

    every state change is a single partial update on the job record. a failure at
    any step marks the job failed and is re-raised so rq applies its retry and
    failed-registry policy. a redelivered message for a completed job is
    acknowledged without doing any work, one for a failed job is failed again untouched
    """

    def __init__(
        self,
        store: JobStore,
        blob_store,
        publisher: Optional[JobEventPublisher] = None,
        download: Callable[[str], bytes] = download_image,
        transform: Callable = apply_transformations,
        upload_retries: Optional[int] = None,
        upload_retry_delay: float = 1.0,
    ):
        self.store = store
        self.blob_store = blob_store
        self.publisher = publisher
        self.download = download
        self.transform = transform
        self.upload_retries = settings.UPLOAD_MAX_RETRIES if upload_retries is None else upload_retries
        self.upload_retry_delay = upload_retry_delay

    def process(self, job_id: str, payload: dict) -> Optional[str]:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"job {job_id} not found")
        if job.status == JobStatus.FAILED.value:
            # stays on rq's failure path, exhausted retries land in the failed registry
            logger.info(f"job {job_id} already failed, not re-running redelivered message")
            raise JobAlreadyFinishedError(f"job {job_id} already failed: {job.error}")
        if job.is_terminal:
            logger.info(f"job {job_id} is already {job.status}, acknowledging redelivered message")
            return job.result_url

        logger.info(f"processing job {job_id}: {payload.get('url')}")
        try:
            specs = parse_transformations(payload.get("transformations") or [])

            self._publish(self.store.start(job_id), "processing started")
            data = self.download(payload["url"])
            self._publish(self.store.advance(job_id, DOWNLOADED_PROGRESS), f"downloaded {len(data)} bytes")

            result = self.transform(data, specs)
            self._publish(self.store.advance(job_id, TRANSFORMED_PROGRESS), f"applied {len(specs)} transformation(s)")

            result_url = self.upload(result, job_id)
            self._publish(self.store.complete(job_id, result_url), "completed")
        except JobAlreadyFinishedError as e:
            # another delivery of the same message finished the job first
            logger.warning(f"job {job_id} finished elsewhere, stopping: {e}")
            if self.store.get(job_id).status == JobStatus.FAILED.value:
                raise
            return None
        except Exception as e:
            handle_worker_error(job_id, e)
            self._publish(self.store.fail(job_id, error_message(e)), error_message(e))
            raise

        logger.info(f"job {job_id} completed: {result_url}")
        return result_url

    def upload(self, data: bytes, job_id: str) -> str:
        """store the result, transient storage errors are retried here instead of replaying the job"""
        put = retry_with_backoff(
            max_retries=max(self.upload_retries, 1),
            initial_delay=self.upload_retry_delay,
            exceptions=(UploadError,),
        )(self.blob_store.put)
        return put(result_path(job_id), data, OUTPUT_CONTENT_TYPE)

    def _publish(self, job: Job, message: str):
        if self.publisher:
            self.publisher.publish(job, message)


_processor: Optional[JobProcessor] = None


def build_processor(redis_conn: Optional[Redis] = None) -> JobProcessor:
    redis_conn = redis_conn or Redis.from_url(settings.REDIS_URL)
    return JobProcessor(
        store=JobStore(engine),
        blob_store=get_blob_store(),
        publisher=JobEventPublisher(redis_conn, settings.JOB_EVENTS_CHANNEL),
    )


def configure_worker(processor: JobProcessor):
    global _processor
    _processor = processor


def get_processor() -> JobProcessor:
    global _processor
    if _processor is None:
        _processor = build_processor()
    return _processor


def process_image_job(payload: dict, job_id: Optional[str] = None):
    """rq entry point, the rq job id is the image job id"""
    if job_id is None:
        current_job = get_current_job()
        if current_job is None:
            raise RuntimeError("process_image_job needs a job_id outside of an rq worker")
        job_id = current_job.id
    return get_processor().process(job_id, payload)


def run_worker():
    redis_conn = Redis.from_url(settings.REDIS_URL)
    init_db()
    # work horses are forked per job and must not share pooled connections with the parent
    engine.dispose()
    configure_worker(build_processor(redis_conn))

    try:
        if settings.WORKER_CONCURRENCY > 1:
            from rq.worker_pool import WorkerPool

            logger.info(f"starting {settings.WORKER_CONCURRENCY} rq workers on queue: {settings.QUEUE_NAME}")
            pool = WorkerPool([settings.QUEUE_NAME], connection=redis_conn, num_workers=settings.WORKER_CONCURRENCY)
            pool.start()
        else:
            queue = Queue(settings.QUEUE_NAME, connection=redis_conn)
            logger.info(f"starting rq worker, listening on queue: {queue.name}")
            # rq handles SIGTERM as a warm shutdown, the current job finishes first
            worker = Worker([queue], connection=redis_conn)
            worker.work()
    finally:
        redis_conn.close()


if __name__ == "__main__":
    run_worker()
