import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from rq.job import Job as RQJob

from imagejobs.core.errors import EnqueueError, UrlValidationError
from imagejobs.models import JobCreate
from imagejobs.services.queue import PROCESS_IMAGE_JOB
from imagejobs.services.submission import JobSubmissionService

REQUEST = {
    "url": "https://x/a.jpg",
    "transformations": [
        {"type": "resize", "options": {"width": 800, "height": 600}},
        {"type": "grayscale"},
        {"type": "watermark", "options": {"text": "Copyright 2024"}},
    ],
}


def accept_url(url):
    pass


class BrokenQueue:
    def enqueue_image_job(self, job_id, payload):
        raise RedisConnectionError("redis is down")


def submit(service, data=REQUEST):
    request = JobCreate.model_validate(data)
    return service.submit(str(request.url), request.transformations)


def test_submit_persists_then_enqueues(store, job_queue, redis_conn):
    service = JobSubmissionService(store, job_queue, url_checker=accept_url)

    job = submit(service)

    assert job.status == "pending"
    assert job.progress == 0
    assert store.get(job.id).to_wire() == job.to_wire()

    rq_job = RQJob.fetch(job.id, connection=redis_conn)
    assert rq_job.func_name == PROCESS_IMAGE_JOB
    payload = rq_job.args[0]
    assert payload["url"] == "https://x/a.jpg"
    assert payload["createdAt"].endswith("Z")
    assert payload["transformations"] == [
        {"type": "resize", "options": {"width": 800, "height": 600}},
        {"type": "grayscale"},
        {"type": "watermark", "options": {"text": "Copyright 2024", "position": "bottom-right"}},
    ]
    assert job_queue.depth() == 1


def test_each_submission_gets_its_own_job(store, job_queue):
    service = JobSubmissionService(store, job_queue, url_checker=accept_url)

    first = submit(service)
    second = submit(service)

    assert first.id != second.id
    assert job_queue.depth() == 2


def test_enqueue_is_idempotent_per_job_id(job_queue):
    payload = {"url": "https://x/a.jpg", "transformations": [], "createdAt": "2026-10-19T10:00:00.000Z"}

    job_queue.enqueue_image_job("abc123", payload)
    job_queue.enqueue_image_job("abc123", payload)

    assert job_queue.depth() == 1


def test_rejected_url_creates_nothing(store, job_queue):
    def reject(url):
        raise UrlValidationError("Image not found (404)")

    service = JobSubmissionService(store, job_queue, url_checker=reject)

    with pytest.raises(UrlValidationError):
        submit(service)

    assert store.list_recent(10) == []
    assert job_queue.depth() == 0


def test_enqueue_failure_leaves_pending_orphan(store):
    service = JobSubmissionService(store, BrokenQueue(), url_checker=accept_url)

    with pytest.raises(EnqueueError):
        submit(service)

    jobs = store.list_recent(10)
    assert len(jobs) == 1
    assert jobs[0].status == "pending"
