from __future__ import annotations

from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

logger = logging.getLogger(__name__)

DB_FILENAME = "sdm-sources.db"
BUSY_TIMEOUT_SECONDS = 5.0


def database_url(db_dir: Path) -> str:
    return f"sqlite:///{Path(db_dir).expanduser() / DB_FILENAME}"


def create_cache_engine(url: str) -> Engine:
    in_memory = url in ("sqlite://", "sqlite:///:memory:")
    connect_args = {"check_same_thread": False, "timeout": BUSY_TIMEOUT_SECONDS}
    poolclass = StaticPool if in_memory else None

    if not in_memory and url.startswith("sqlite:///"):
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening cache database url=%s", url)
    return create_engine(
        url,
        echo=False,
        connect_args=connect_args,
        poolclass=poolclass,
    )


def init_db(engine: Engine) -> None:
    # Ensure models are imported before creating tables.
    import sdm_ui.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session
