"""
Database configuration with fail-safe features:
- pool_pre_ping=True for server databases
- SSL enforced for Supabase
- SQLite transactions open with BEGIN IMMEDIATE so writers queue instead of failing
- Retry on OperationalError during preflight (max 2 times)
- No module-level engine; callers build and inject their own
"""
import logging
import time
from typing import Tuple

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

logger = logging.getLogger(__name__)

# Declarative base for models
Base = declarative_base()


def normalize_url(database_url: str) -> str:
    # Add SSL mode for Supabase if not present
    if "supabase" in database_url and "sslmode" not in database_url:
        database_url += "?sslmode=require"
        logger.info("Added sslmode=require to DATABASE_URL")
    return database_url


def _install_sqlite_hooks(engine: Engine, busy_timeout: int) -> None:
    """
    Let SQLAlchemy own transaction boundaries on pysqlite and take the write
    lock up front. A deferred transaction that reads and then writes cannot
    wait on the busy handler, so concurrent stock updates would fail instead
    of serializing.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {busy_timeout * 1000}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 300,
    sqlite_busy_timeout: int = 30,
    echo: bool = False,
) -> Engine:
    database_url = normalize_url(database_url)

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": sqlite_busy_timeout},
        )
        _install_sqlite_hooks(engine, sqlite_busy_timeout)
        logger.info("SQLite engine configured")
        return engine

    engine = create_engine(
        database_url,
        pool_pre_ping=True,          # Verify connection health before use
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,   # Recycle connections
        pool_timeout=pool_timeout,   # Timeout for getting connection
        echo=echo,
    )
    logger.info("Database connection configured")
    return engine


def build_engine_from_settings(settings) -> Engine:
    return build_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        sqlite_busy_timeout=settings.SQLITE_BUSY_TIMEOUT,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist"""
    # Models must be imported so their tables are registered on Base.metadata
    from bookledger import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def check_connection(engine: Engine, attempts: int = 3, delay: float = 1.0) -> Tuple[bool, str]:
    """Preflight connection test with retry on OperationalError"""
    for attempt in range(attempts):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True, "Database connection successful"
        except OperationalError as e:
            if attempt == attempts - 1:
                return False, f"Database connection failed: {str(e)}"
            logger.warning(f"Database connection attempt {attempt + 1} failed, retrying...")
            time.sleep(delay)
    return False, "Database connection test failed"
