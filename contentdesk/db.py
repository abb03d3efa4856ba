import time
import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

def normalize_db_url(db_url: str) -> URL:
    """Parse the configured URL and pin Postgres to the psycopg 3 driver."""
    url = make_url(db_url)
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+psycopg")
    return url

def _engine_options(url: URL) -> dict:
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    return options

def build_engine(db_url: str, retries: int = 3, backoff: float = 2.0):
    """Create the engine and wait for the database to accept a connection."""
    url = normalize_db_url(db_url)
    engine = create_engine(url, **_engine_options(url))
    safe_url = url.render_as_string(hide_password=True)

    if url.get_backend_name() == "sqlite":
        # WAL lets the scheduler thread read while a request writes
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            break
        except OperationalError as e:
            if attempt == retries:
                logger.error(f"Database unreachable after {retries} attempts: {safe_url}")
                raise
            logger.warning(f"Database connection attempt {attempt} failed for {safe_url}, retrying in {backoff}s ({e.orig})")
            time.sleep(backoff)
            backoff *= 2

    return engine

engine = build_engine(settings.database_url, retries=settings.db_connect_retries)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
