from typing import Dict, List, Optional

from sqlalchemy import case, func, update
from sqlmodel import Session, col, select

from imagejobs.core.db import engine as default_engine
from imagejobs.core.errors import JobAlreadyFinishedError, JobNotFoundError
from imagejobs.models import Job, JobStatus, TERMINAL_STATUSES
from imagejobs.models.jobs import utc_now

STARTED_PROGRESS = 20
DOWNLOADED_PROGRESS = 50
TRANSFORMED_PROGRESS = 80
COMPLETED_PROGRESS = 100


class JobStore:
    """durable job records, every write is a single atomic partial update"""

    def __init__(self, engine):
        self.engine = engine

    def create(self, job: Job) -> Job:
        """persist a new job record and return it once committed"""
        with Session(self.engine) as session:
            session.add(job)
            session.commit()
            session.refresh(job)
            return job

    def get(self, job_id: str) -> Optional[Job]:
        with Session(self.engine) as session:
            return session.get(Job, job_id)

    def list_recent(self, limit: int) -> List[Job]:
        """newest first by creation time"""
        with Session(self.engine) as session:
            query = select(Job).order_by(col(Job.created_at).desc()).limit(limit)
            return list(session.exec(query).all())

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        with Session(self.engine) as session:
            rows = session.exec(select(Job.status, func.count()).group_by(Job.status)).all()
            for status, count in rows:
                counts[status] = count
        return counts

    def update(self, job_id: str, **fields) -> Job:
        """
        merge the named fields into the record in one UPDATE statement
        jobs that already reached completed or failed are never touched again
        """
        fields["updated_at"] = utc_now()
        statement = (
            update(Job)
            .where(col(Job.id) == job_id)
            .where(col(Job.status).not_in(TERMINAL_STATUSES))
            .values(**fields)
        )
        with Session(self.engine) as session:
            result = session.execute(statement)
            session.commit()
            job = session.get(Job, job_id)
            if result.rowcount == 0:
                if job is None:
                    raise JobNotFoundError(f"job {job_id} not found")
                raise JobAlreadyFinishedError(f"job {job_id} is already {job.status}")
            return job

    def _forward_progress(self, progress: int):
        # progress never moves backwards while a job is processing, even on redelivery
        return case((col(Job.progress) < progress, progress), else_=col(Job.progress))

    def start(self, job_id: str) -> Job:
        """mark a job as processing"""
        return self.update(
            job_id,
            status=JobStatus.PROCESSING.value,
            progress=self._forward_progress(STARTED_PROGRESS),
        )

    def advance(self, job_id: str, progress: int) -> Job:
        """update job progress"""
        return self.update(job_id, progress=self._forward_progress(progress))

    def complete(self, job_id: str, result_url: str) -> Job:
        """mark a job as completed"""
        return self.update(
            job_id,
            status=JobStatus.COMPLETED.value,
            progress=COMPLETED_PROGRESS,
            result_url=result_url,
            processed_at=utc_now(),
            error=None,
        )

    def fail(self, job_id: str, error_message: str) -> Job:
        """mark a job as failed"""
        return self.update(
            job_id,
            status=JobStatus.FAILED.value,
            progress=0,
            error=error_message,
            result_url=None,
            processed_at=None,
        )


def get_job_store() -> JobStore:
    return JobStore(default_engine)
