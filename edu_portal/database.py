from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from access.access_config import ACCESS_SETTINGS

DATABASE_URL = ACCESS_SETTINGS["DATABASE_URL"]


def is_sqlite(url):
    return url is not None and url.startswith("sqlite")


def is_memory_database(url):
    return is_sqlite(url) and (url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url)


def _engine_options(url):
    if not is_sqlite(url):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if is_memory_database(url):
        # One shared connection, or each session would see an empty database
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
