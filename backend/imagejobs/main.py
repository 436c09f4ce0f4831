from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from imagejobs.core.db import init_db
from imagejobs.api.v1 import jobs, health, ws
from imagejobs.core.config import settings
from imagejobs.core.logging_config import get_logger
from imagejobs.services.queue import JobQueue
import os

logger = get_logger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

@app.on_event("startup")
def on_startup():
    init_db()
    os.makedirs(settings.RESULTS_DIR, exist_ok=True)
    app.state.job_queue = JobQueue.from_url(settings.REDIS_URL)

@app.on_event("shutdown")
def on_shutdown():
    job_queue = getattr(app.state, "job_queue", None)
    if job_queue:
        job_queue.close()

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "errors": jsonable_encoder(exc.errors()),
        },
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})

@app.get("/")
def read_root():
    return {"message": "Welcome to Image Jobs API"}

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# results written by the local blob store are served straight from disk
if settings.STORAGE_BACKEND == "local":
    app.mount("/results", StaticFiles(directory=settings.RESULTS_DIR, check_dir=False), name="results")
