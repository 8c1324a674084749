from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker


def _normalise_database_url(raw_url: str) -> str:
    url = make_url(raw_url)
    drivername = url.drivername
    if drivername.startswith("sqlite+"):
        url = url.set(drivername="sqlite")
    elif "+" in drivername and drivername.startswith("postgresql+"):
        url = url.set(drivername="postgresql")
    return url.render_as_string(hide_password=False)


def _sqlite_connect_args(url: str) -> Dict[str, Any]:
    if not url.startswith("sqlite"):
        return {}
    connect_args: Dict[str, Any] = {"check_same_thread": False}
    db_path = make_url(url).database
    if db_path and db_path != ":memory:":
        path = Path(db_path)
        if not path.is_absolute():
            path = (Path.cwd() / db_path).resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
    return connect_args


def make_engine(db_url: str) -> Engine:
    url = _normalise_database_url(db_url)
    return create_engine(url, connect_args=_sqlite_connect_args(url))


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


__all__ = ["make_engine", "make_session_factory"]
