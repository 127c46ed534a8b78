from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from stockhub.core.config import settings


def build_engine(database_url: str) -> Engine:
    engine_kwargs: dict[str, object] = {
        # Detect and recover from stale pooled connections.
        "pool_pre_ping": True,
    }
    if not database_url.lower().startswith("sqlite"):
        engine_kwargs.update(
            {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_timeout": settings.db_pool_timeout_seconds,
                "pool_recycle": settings.db_pool_recycle_seconds,
            }
        )
    return create_engine(database_url, **engine_kwargs)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
