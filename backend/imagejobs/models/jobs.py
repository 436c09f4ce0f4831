from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4
from sqlalchemy import BigInteger, Column, DateTime, Text
from sqlmodel import SQLModel, Field
import time


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


def new_job_id() -> str:
    return uuid4().hex


def now_millis() -> int:
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """render a utc datetime the way javascript's toISOString does"""
    # sqlite hands back naive values, they are utc already
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


class Job(SQLModel, table=True):
    __tablename__ = "jobs"
    id: str = Field(default_factory=new_job_id, primary_key=True, max_length=64)
    url: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(default=JobStatus.PENDING.value, index=True)  # pending, processing, completed, failed
    progress: int = Field(default=0)
    # epoch millis, sole sort key for listing
    created_at: int = Field(default_factory=now_millis, sa_column=Column(BigInteger, nullable=False, index=True))
    result_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    error: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_wire(self) -> dict:
        """client facing representation, optional fields are omitted when unset"""
        data = {
            "id": self.id,
            "url": self.url,
            "status": self.status,
            "progress": self.progress,
            "createdAt": self.created_at,
        }
        if self.result_url is not None:
            data["resultUrl"] = self.result_url
        if self.error is not None:
            data["error"] = self.error
        if self.processed_at is not None:
            data["processedAt"] = format_timestamp(self.processed_at)
        return data
