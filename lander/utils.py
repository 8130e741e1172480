"""Shared utility functions for the Lander backend."""

import logging
from datetime import datetime, UTC

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-aware month addition; the day is clamped to the target month's length."""
    return value + relativedelta(months=months)


def parse_timestamp(timestamp_str: str | None) -> datetime | None:
    """
    Parse an ISO timestamp string to an aware UTC datetime.

    Args:
        timestamp_str: ISO format timestamp string (a trailing "Z" is accepted).

    Returns:
        Parsed datetime or None if parsing fails.
    """
    if not timestamp_str:
        return None

    try:
        return as_utc(datetime.fromisoformat(timestamp_str.replace("Z", "+00:00")))
    except ValueError as e:
        logger.debug(f"Failed to parse timestamp '{timestamp_str}': {e}")
        return None


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
