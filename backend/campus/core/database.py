# campus/core/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from campus.core.config import settings

# Sync engine
sync_url = settings.DATABASE_URL.replace("+asyncpg", "")
if sync_url.startswith("sqlite"):
    # Local/test databases: one shared connection usable from the threadpool
    engine = create_engine(
        sync_url,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(sync_url, echo=False, pool_pre_ping=True)

# Sync sessionmaker
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# Dependency
def get_session() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Create missing tables (schema migrations are managed outside this service)
def init_db():
    import campus.academics.models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind=engine)
