from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from .config import settings

# Make sure PostgreSQL goes through the psycopg (v3) driver
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)

if database_url.startswith("sqlite"):
    # Tree loads run in the worker thread pool, not the thread that opened the session
    connect_args = {"check_same_thread": False}
else:
    # Behind PgBouncer (transaction mode) server-side prepared statements break
    # when connections are reused, so keep them off.
    connect_args = {"prepare_threshold": 0}

engine = create_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for every ORM model
Base = declarative_base()

# Session factory for work that runs outside the request, in the worker thread pool
def get_session_factory():
    return SessionLocal

# Request-scoped database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Create all tables
def create_tables():
    Base.metadata.create_all(bind=engine)
