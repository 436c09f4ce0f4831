import json
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

from imagejobs.core.logging_config import get_logger
from imagejobs.models import Job

logger = get_logger(__name__)


class JobEventPublisher:
    """publishes job lifecycle events to redis pub/sub for real-time clients"""

    def __init__(self, redis_client, channel: str):
        self.redis_client = redis_client
        self.channel = channel

    def publish(self, job: Job, message: str = "", metadata: Optional[dict] = None):
        event = {
            "type": "job_progress",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "job_id": job.id,
            "status": job.status,
            "progress": job.progress,
            "message": message,
            "job": job.to_wire(),
            "metadata": metadata or {},
        }

        try:
            self.redis_client.publish(self.channel, json.dumps(event))
        except RedisError as e:
            # the job record is the source of truth, a missed event only delays the frontend
            logger.warning(f"failed to publish event for job {job.id}: {e}")
