"""
Date parsing and construction of the filtered job search query.

Filter values only ever reach SQL as bound parameters. Title and
description are case-insensitive substring matches (SQLite folds ASCII
letters only); the date is an exact match on the parsed calendar date.
"""

from dataclasses import dataclass, field
import datetime as dt
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.sql import Select

from .database import Job
from .errors import ParseError
from .logger import get_logger
from .models import DATE_FORMAT

logger = get_logger()


def parse_date(value: str) -> dt.date:
    """
    Parse a dd-mm-yyyy date.

    Raises:
        ParseError: If the value is not a valid date in that format
    """
    try:
        return dt.datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ParseError(
            f"Invalid date format: {value!r}. Please use the format dd-mm-yyyy."
        )


def resolve_date(value: Optional[str]) -> dt.date:
    """Return today's date for None, "" or "today"; parse anything else."""
    if value is None or value.strip() == "" or value.strip().lower() == "today":
        return dt.date.today()
    return parse_date(value)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    return value


@dataclass
class SearchFilters:
    """
    Normalised search criteria.

    Empty strings mean "no constraint". A date that does not parse is
    dropped with a warning rather than failing the search; `dropped`
    lists the names of filters discarded that way.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    dropped: List[str] = field(default_factory=list)

    @classmethod
    def from_raw(
        cls,
        title: Optional[str] = None,
        description: Optional[str] = None,
        date: Optional[str] = None,
    ) -> "SearchFilters":
        filters = cls(title=_clean(title), description=_clean(description))
        raw_date = _clean(date)
        if raw_date is not None:
            try:
                filters.date = parse_date(raw_date)
            except ParseError as e:
                logger.warning("Dropping date filter", date=raw_date, error=str(e))
                filters.dropped.append("date")
        return filters

    def is_empty(self) -> bool:
        return self.title is None and self.description is None and self.date is None


def build_search_query(filters: SearchFilters) -> Select:
    """
    Build the read query for the given filters.

    All present filters are combined with AND. Results are ordered by date
    ascending, then by id so ties keep insertion order.
    """
    stmt = select(Job)

    if filters.title is not None:
        stmt = stmt.where(Job.title.icontains(filters.title, autoescape=True))
    if filters.description is not None:
        stmt = stmt.where(Job.description.icontains(filters.description, autoescape=True))
    if filters.date is not None:
        stmt = stmt.where(Job.date == filters.date)

    return stmt.order_by(Job.date.asc(), Job.id.asc())
