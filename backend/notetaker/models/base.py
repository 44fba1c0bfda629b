from __future__ import annotations

from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from notetaker.config import Settings

# Table modules must be imported so their metadata is registered
from notetaker.models import audio_file, meeting, notes, setting, transcript_segment  # noqa: F401

_settings = Settings()

# SQLite with WAL enabled
engine: Engine = create_engine(
    f"sqlite:///{_settings.database_path}", connect_args={"check_same_thread": False}
)


def init_db(bind: Engine | None = None) -> None:
    target = bind or engine
    if target.dialect.name == "sqlite" and target.url.database not in (None, "", ":memory:"):
        with target.begin() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
            conn.exec_driver_sql("PRAGMA synchronous=NORMAL;")
    SQLModel.metadata.create_all(target)
