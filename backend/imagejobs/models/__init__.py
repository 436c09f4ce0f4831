from imagejobs.models.jobs import Job, JobStatus, TERMINAL_STATUSES
from imagejobs.models.transforms import (
    GrayscaleTransform,
    JobCreate,
    ResizeTransform,
    Transformation,
    UnknownTransform,
    WatermarkTransform,
)
