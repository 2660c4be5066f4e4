from sqlmodel import SQLModel, create_engine, Session

from studysets import models  # noqa: F401  registers the tables on SQLModel.metadata
from studysets.config import DATABASE_URL

if DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync endpoints in a threadpool
    engine = create_engine(DATABASE_URL, echo=False, connect_args={"check_same_thread": False})
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)


def init_db() -> None:
    """
    Initializes the database tables.
    Hosted databases are expected to be migrated already; create_all only adds missing tables.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
