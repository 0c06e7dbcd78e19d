from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import List
import logging

from core.exceptions import ManitoException, Internal

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./manito.db"
    # Closed by default: a member joining after assignment would never
    # receive a recipient nor be anyone's recipient.
    allow_join_after_assignment: bool = False
    match_max_attempts: int = 10
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

is_sqlite = settings.database_url.startswith("sqlite")

# SQLite: the connection is shared across FastAPI worker threads, and writers
# wait on the database lock instead of failing immediately.
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False, "timeout": 15} if is_sqlite else {},
    pool_pre_ping=True
)

if is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: one database session per request.

    The session is closed once the request finishes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator: the wrapped function runs as one atomic unit.

    Usage:
        @transactional
        def some_transition(db: Session, ...):
            group = Group(...)
            db.add(group)
            # no manual commit, the decorator commits

    If the function raises:
        - the session is rolled back, nothing it wrote is persisted
        - domain errors are re-raised unchanged for the API layer
        - SQLAlchemy failures are re-raised as core.exceptions.Internal

    Notes:
        - the first argument must be db: Session (or pass db=...)
        - never commit inside the wrapped function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except ManitoException as e:
            logger.warning(f"Transaction rolled back in {func.__name__}: [{e.kind}] {e.message}")
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise Internal("Persistence failure") from e
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
