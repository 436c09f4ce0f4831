import os
import tempfile

# settings are read at import time, point them at throwaway locations first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="imagejobs-tests-"))
os.environ["LOG_DIR"] = ""
os.environ["STORAGE_BACKEND"] = "local"

from io import BytesIO

import fakeredis
import pytest
import requests
from fastapi.testclient import TestClient
from PIL import Image
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from imagejobs import models  # noqa: F401
from imagejobs.main import app
from imagejobs.services.blob_store import LocalBlobStore, get_blob_store
from imagejobs.services.job_store import JobStore, get_job_store
from imagejobs.services.queue import JobQueue, get_job_queue


class FakeResponse:
    """minimal stand-in for requests.Response"""

    def __init__(self, status_code=200, headers=None, chunks=None):
        self.status_code = status_code
        self.headers = headers or {}
        self.chunks = chunks or []
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class RecordingPublisher:
    """collects a snapshot of the job on every published transition"""

    def __init__(self):
        self.events = []

    def publish(self, job, message="", metadata=None):
        self.events.append({"status": job.status, "progress": job.progress, "message": message})


def make_image_bytes(size=(64, 48), color=(200, 30, 30), fmt="PNG"):
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(name="image_bytes")
def image_bytes_fixture():
    return make_image_bytes()


# create in-memory test database
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="store")
def store_fixture(engine):
    return JobStore(engine)


@pytest.fixture(name="redis_conn")
def redis_conn_fixture():
    return fakeredis.FakeRedis()


@pytest.fixture(name="job_queue")
def job_queue_fixture(redis_conn):
    return JobQueue(redis_conn, name="image-processing-test")


@pytest.fixture(name="blob_store")
def blob_store_fixture(tmp_path):
    return LocalBlobStore(str(tmp_path / "results"), "http://testserver/results")


@pytest.fixture(name="publisher")
def publisher_fixture():
    return RecordingPublisher()


@pytest.fixture(name="image_head")
def image_head_fixture(monkeypatch):
    """pre-flight requests see a reachable jpeg"""
    def fake_head(url, **kwargs):
        return FakeResponse(200, {"content-type": "image/jpeg"})

    monkeypatch.setattr(requests, "head", fake_head)


@pytest.fixture(name="client")
def client_fixture(store, job_queue, blob_store):
    app.dependency_overrides[get_job_store] = lambda: store
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
