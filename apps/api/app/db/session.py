from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings

url = make_url(settings.DATABASE_URL)
engine_kwargs: dict = {"pool_pre_ping": True}
if url.get_backend_name() == "sqlite":
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        # In-memory databases must share one connection across threads
        engine_kwargs["poolclass"] = StaticPool
elif url.get_backend_name().startswith("postgresql"):
    engine_kwargs["connect_args"] = {"options": "-c timezone=utc"}

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables that do not exist yet."""
    from app.db import models  # noqa: F401  (registers mappers)
    from app.db.base import Base

    Base.metadata.create_all(bind=engine)
