from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from broadcast_api.core.config import settings


def build_engine(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # sqlite connections are shared with the dispatcher's worker threads
        options = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return create_engine(url, **options)
    return create_engine(
        url,
        pool_pre_ping=True,               # drop dead connections before use
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)
