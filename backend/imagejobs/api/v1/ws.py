from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Optional
import json
from datetime import datetime, timezone
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from imagejobs.core.config import settings
from imagejobs.core.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def event_matches(event: dict, job_id: Optional[str]) -> bool:
    return job_id is None or event.get("job_id") == job_id


@router.websocket("/jobs")
async def websocket_jobs(websocket: WebSocket, job_id: Optional[str] = None):
    """stream job lifecycle events published by the workers, optionally for one job"""
    await websocket.accept()

    redis = aioredis.from_url(settings.REDIS_URL)
    pubsub = redis.pubsub()

    try:
        await pubsub.subscribe(settings.JOB_EVENTS_CHANNEL)

        # send initial connection message
        await websocket.send_json({
            "type": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "job_id": job_id,
        })

        async for message in pubsub.listen():
            if message['type'] != 'message':
                continue
            try:
                event = json.loads(message['data'])
            except ValueError as e:
                logger.warning(f"error parsing job event: {e}")
                continue
            if event_matches(event, job_id):
                await websocket.send_json(event)

    except WebSocketDisconnect:
        logger.info("client disconnected from job stream")
    except RedisError as e:
        logger.error(f"job stream error: {e}")
        await websocket.close(code=1011)
    finally:
        await pubsub.unsubscribe(settings.JOB_EVENTS_CHANNEL)
        await pubsub.aclose()
        await redis.aclose()
