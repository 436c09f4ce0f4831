import os


def _int_list(raw: str) -> list:
    return [int(part) for part in raw.split(",") if part.strip()]


class Settings:
    PROJECT_NAME: str = "Image Jobs"
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://postgres:postgres@db:5432/imagejobs")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://redis:6379/0")

    # queue
    QUEUE_NAME: str = os.getenv("QUEUE_NAME", "image-processing")
    JOB_EVENTS_CHANNEL: str = os.getenv("JOB_EVENTS_CHANNEL", "job_events")
    JOB_TIMEOUT_SECONDS: int = int(os.getenv("JOB_TIMEOUT_SECONDS", "300"))
    JOB_MAX_RETRIES: int = int(os.getenv("JOB_MAX_RETRIES", "3"))
    JOB_RETRY_INTERVALS: list = _int_list(os.getenv("JOB_RETRY_INTERVALS", "10,30,60"))
    RESULT_TTL_SECONDS: int = int(os.getenv("RESULT_TTL_SECONDS", "86400"))
    FAILURE_TTL_SECONDS: int = int(os.getenv("FAILURE_TTL_SECONDS", "604800"))
    WORKER_CONCURRENCY: int = int(os.getenv("WORKER_CONCURRENCY", "1"))

    # fetching source images
    PREFLIGHT_TIMEOUT_SECONDS: float = float(os.getenv("PREFLIGHT_TIMEOUT_SECONDS", "5"))
    DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "30"))
    MAX_DOWNLOAD_BYTES: int = int(os.getenv("MAX_DOWNLOAD_BYTES", str(10 * 1024 * 1024)))

    # output
    OUTPUT_QUALITY: int = int(os.getenv("OUTPUT_QUALITY", "90"))
    UPLOAD_MAX_RETRIES: int = int(os.getenv("UPLOAD_MAX_RETRIES", "3"))

    # storage paths
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")  # "local" or "s3"
    DATA_DIR: str = os.getenv("DATA_DIR", "/data")
    RESULTS_DIR: str = os.path.join(DATA_DIR, "results")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000/results")

    # s3 compatible object storage
    S3_BUCKET: str = os.getenv("S3_BUCKET", "")
    S3_ENDPOINT_URL: str = os.getenv("S3_ENDPOINT_URL", "")
    S3_REGION: str = os.getenv("S3_REGION", "us-east-1")
    S3_ACCESS_KEY_ID: str = os.getenv("S3_ACCESS_KEY_ID", "")
    S3_SECRET_ACCESS_KEY: str = os.getenv("S3_SECRET_ACCESS_KEY", "")
    S3_PUBLIC_BASE_URL: str = os.getenv("S3_PUBLIC_BASE_URL", "")  # e.g. https://cdn.example.com

    # listing
    LIST_DEFAULT_LIMIT: int = int(os.getenv("LIST_DEFAULT_LIMIT", "50"))
    LIST_MAX_LIMIT: int = int(os.getenv("LIST_MAX_LIMIT", "200"))

    # logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", "/var/log/imagejobs")

settings = Settings()
