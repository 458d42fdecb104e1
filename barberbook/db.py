# barberbook/db.py

from sqlmodel import SQLModel, create_engine, Session

from .config import DATABASE_URL, SQL_ECHO

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # required for SQLite + FastAPI
    connect_args["check_same_thread"] = False

# Engine = connection to the database
engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)


def init_db(bind=None):
    # register tables on the metadata before creating them
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
