from typing import Iterator
import logging

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

# Register table metadata before create_all
from .db.models import User  # noqa: F401

logger = logging.getLogger(__name__)


def build_engine(db_url: str, echo: bool = False, **overrides) -> Engine:
    # Choose engine options based on database scheme
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        # SQLite specific connect args
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
    else:
        # Better resiliency for managed MySQL/Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })
    engine_kwargs.update(overrides)
    return create_engine(db_url, echo=echo, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    logger.info("Users table ready")


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session
