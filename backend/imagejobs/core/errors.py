import logging
from typing import Callable, Any, Tuple, Type
from functools import wraps
import time

logger = logging.getLogger(__name__)

def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    decorator to retry a function with exponential backoff

    usage:
        @retry_with_backoff(max_retries=5, initial_delay=2.0)
        def put_object(path, data):
            # ... code that might fail ...

    only exceptions listed in `exceptions` are retried, anything else propagates
    on the first attempt
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            delay = initial_delay
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {str(e)}. "
                            f"retrying in {delay}s..."
                        )
                        time.sleep(delay)
                        delay *= backoff_factor
                    else:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} attempts: {str(e)}"
                        )

            # all retries exhausted
            raise last_exception

        return wrapper
    return decorator


def handle_worker_error(job_id: str, error: Exception):
    """
    centralized error handler for worker jobs
    logs the failure with its traceback, the job record is updated by the caller
    """
    logger.error(f"job {job_id} failed: {error}", exc_info=error)


class ImageJobsException(Exception):
    """base exception for image-jobs specific errors"""
    pass


class UrlValidationError(ImageJobsException):
    """raised when the pre-flight check rejects a source url"""
    pass


class DownloadError(ImageJobsException):
    """raised when the source image cannot be fetched"""
    pass


class DownloadTimeoutError(DownloadError):
    """raised when the download exceeds its deadline"""
    pass


class DownloadTooLargeError(DownloadError):
    """raised when the source image is bigger than the size cap"""
    pass


class TransformError(ImageJobsException):
    """raised when the image cannot be decoded or transformed"""
    pass


class UploadError(ImageJobsException):
    """raised when the result cannot be written to the blob store"""
    pass


class EnqueueError(ImageJobsException):
    """raised when a persisted job could not be published to the queue"""
    pass


class JobNotFoundError(ImageJobsException):
    """raised when a job id has no record"""
    pass


class JobAlreadyFinishedError(ImageJobsException):
    """raised when an update targets a job that is already completed or failed"""
    pass
