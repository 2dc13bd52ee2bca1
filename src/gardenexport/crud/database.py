from __future__ import annotations
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

import gardenexport.crud.models  # noqa: F401  registers tables on SQLModel.metadata


IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(db_url: str):
    """Engine usable from export worker threads. In-memory SQLite shares one connection."""
    kwargs: dict = {}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in IN_MEMORY_URLS:
            kwargs["poolclass"] = StaticPool
    return create_engine(db_url, echo=False, **kwargs)


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)
