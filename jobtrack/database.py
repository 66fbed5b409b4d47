"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for job storage.
"""

from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, Date
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .logger import get_logger

logger = get_logger()

Base = declarative_base()

# dd-mm-yyyy, the date text written by the earlier job_search tool
LEGACY_DATE_GLOB = "[0-9][0-9]-[0-9][0-9]-[0-9][0-9][0-9][0-9]"


class Job(Base):
    """Job application model."""

    __tablename__ = "jobs"
    # AUTOINCREMENT keeps ids from being reused after a delete
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    date = Column(Date, nullable=False)  # stored as ISO text, so ORDER BY is calendar order


def create_db_engine(db_path: Path) -> Engine:
    """
    Create an engine for the SQLite file at db_path.

    The connection is shared by HTTP worker threads, so SQLite's
    same-thread check is disabled; callers serialise access themselves.
    """
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


def init_database(db_path: Path) -> Engine:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Engine bound to the database
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    upgrade_legacy_schema(engine)
    Base.metadata.create_all(engine)
    return engine


def upgrade_legacy_schema(engine: Engine) -> int:
    """
    Convert a jobs table written by the earlier job_search tool.

    That schema has no AUTOINCREMENT and keeps dates as dd-mm-yyyy text,
    which the Date column cannot read. The table is rebuilt with the
    current schema (ids preserved) and dates are rewritten as ISO text.

    Args:
        engine: Engine returned by create_db_engine

    Returns:
        Number of rows whose date was rewritten
    """
    with engine.begin() as conn:
        table_sql = conn.exec_driver_sql(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = 'jobs'"
        ).scalar()
        if table_sql is None:
            return 0
        if "AUTOINCREMENT" not in table_sql.upper():
            logger.info("Rebuilding legacy jobs table")
            conn.exec_driver_sql("ALTER TABLE jobs RENAME TO jobs_legacy")
            Job.__table__.create(conn)
            conn.exec_driver_sql(
                "INSERT INTO jobs (id, title, description, date) "
                "SELECT id, title, description, date FROM jobs_legacy ORDER BY id"
            )
            conn.exec_driver_sql("DROP TABLE jobs_legacy")

        result = conn.exec_driver_sql(
            "UPDATE jobs SET date = substr(date, 7, 4) || '-' || substr(date, 4, 2)"
            " || '-' || substr(date, 1, 2) WHERE date GLOB ?",
            (LEGACY_DATE_GLOB,),
        )
    if result.rowcount:
        logger.info("Converted legacy dates to ISO", rows=result.rowcount)
    return result.rowcount


def reset_database(engine: Engine) -> None:
    """Drop and recreate every table. All rows are lost and ids restart."""
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def get_session(engine: Engine):
    """
    Get database session.

    Args:
        engine: Engine returned by init_database

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()
