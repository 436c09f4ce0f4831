from sqlmodel import SQLModel, Session, create_engine
from imagejobs.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

def init_db(bind=None):
    """create tables for all registered models"""
    # models must be imported so they register on the metadata
    from imagejobs import models  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)

def get_session():
    with Session(engine) as session:
        yield session
