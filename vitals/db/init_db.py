from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine

from vitals.db.models import Base
from vitals.db.session import get_engine


def init_db(engine: Engine | None = None) -> None:
    engine = engine or get_engine()
    db_path = engine.url.database if engine.url.get_backend_name() == "sqlite" else None
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
