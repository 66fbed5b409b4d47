"""
Job store.

Owns the jobs table and exposes create/list/search/remove/clear. Every
mutating call commits before it returns. A single re-entrant lock
serialises access, so HTTP worker threads can share one store.
"""

import threading
import datetime as dt
from pathlib import Path
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .database import Job, get_session, init_database, reset_database
from .errors import PersistenceError
from .logger import get_logger
from .models import JobRecord
from .query import SearchFilters, build_search_query
from .retry import RetryError, exponential_backoff, is_transient_error

logger = get_logger()


def _log_retry(attempt: int, error: Exception, delay: float):
    logger.warning("Database busy, retrying", attempt=attempt, delay=delay, error=str(error))


_retry_when_locked = exponential_backoff(
    max_retries=3,
    base_delay=0.1,
    exceptions=(OperationalError,),
    should_retry=is_transient_error,
    on_retry=_log_retry,
)


class JobStore:
    """Persistence for job records backed by one SQLite file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        try:
            self.engine = init_database(self.db_path)
        except SQLAlchemyError as e:
            logger.error("Could not open database", path=str(self.db_path), error=str(e))
            raise PersistenceError(f"Could not open database at {self.db_path}: {e}") from e
        logger.debug("Store opened", path=str(self.db_path), jobs=self.count())

    def _fail(self, operation: str, error: Exception) -> PersistenceError:
        logger.record_store_error(operation)
        logger.error(f"Store {operation} failed", error=str(error))
        return PersistenceError(f"Error during {operation}: {error}")

    def add(self, title: str, description: str, date: dt.date) -> JobRecord:
        """Insert a job and return it with its assigned id."""

        @_retry_when_locked
        def insert() -> JobRecord:
            session = get_session(self.engine)
            try:
                job = Job(title=title, description=description, date=date)
                session.add(job)
                session.commit()
                return JobRecord.from_orm(job)
            except SQLAlchemyError:
                session.rollback()
                raise
            finally:
                session.close()

        with self._lock:
            try:
                record = insert()
            except (SQLAlchemyError, RetryError) as e:
                raise self._fail("add", e) from e
        logger.info("Job added", id=record.id, title=record.title, date=record.display_date)
        return record

    def list(self) -> List[JobRecord]:
        """Return every job in row order."""
        with self._lock:
            session = get_session(self.engine)
            try:
                jobs = session.scalars(select(Job).order_by(Job.id)).all()
                return [JobRecord.from_orm(job) for job in jobs]
            except (SQLAlchemyError, ValueError) as e:
                raise self._fail("list", e) from e
            finally:
                session.close()

    def search(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        date: Optional[str] = None,
    ) -> List[JobRecord]:
        """
        Return jobs matching every non-empty filter, ordered by date.

        Args:
            title: Substring of the title (case-insensitive)
            description: Substring of the description (case-insensitive)
            date: Exact date as dd-mm-yyyy; dropped with a warning if malformed

        Returns:
            Matching records, date ascending then insertion order
        """
        return self.search_filters(SearchFilters.from_raw(title, description, date))

    def search_filters(self, filters: SearchFilters) -> List[JobRecord]:
        stmt = build_search_query(filters)
        with self._lock:
            session = get_session(self.engine)
            try:
                jobs = session.scalars(stmt).all()
                return [JobRecord.from_orm(job) for job in jobs]
            except (SQLAlchemyError, ValueError) as e:
                raise self._fail("search", e) from e
            finally:
                session.close()

    def remove(self, job_id: int) -> None:
        """Delete the job with job_id. Unknown ids are a no-op."""

        @_retry_when_locked
        def delete_row() -> int:
            session = get_session(self.engine)
            try:
                result = session.execute(delete(Job).where(Job.id == job_id))
                session.commit()
                return result.rowcount
            except SQLAlchemyError:
                session.rollback()
                raise
            finally:
                session.close()

        with self._lock:
            try:
                removed = delete_row()
            except (SQLAlchemyError, RetryError) as e:
                raise self._fail("remove", e) from e
        if removed:
            logger.info("Job removed", id=job_id)
        else:
            logger.debug("No job to remove", id=job_id)

    def clear(self) -> None:
        """Drop and recreate the schema. All jobs are lost and ids restart."""
        with self._lock:
            try:
                _retry_when_locked(reset_database)(self.engine)
            except (SQLAlchemyError, RetryError) as e:
                raise self._fail("clear", e) from e
        logger.info("Database cleared", path=str(self.db_path))

    def count(self) -> int:
        with self._lock:
            session = get_session(self.engine)
            try:
                return session.scalar(select(func.count()).select_from(Job))
            except SQLAlchemyError as e:
                raise self._fail("count", e) from e
            finally:
                session.close()

    def close(self) -> None:
        self.engine.dispose()
