"""
Input validation functions for report query parameters.

All validators raise ValidationError on invalid input.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Tuple

from adreport.exceptions import ValidationError


# Project ids are opaque store keys
PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-:.]{1,128}$")

# Maximum window a single report may span
MAX_RANGE_DAYS = 731

MS_PER_DAY = 86_400_000


def validate_project_id(value: str) -> str:
    """
    Validate a project identifier.

    Returns:
        The stripped project id

    Raises:
        ValidationError: If empty or containing unexpected characters
    """
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError("project_id", "Project id is required", value)

    value = value.strip()
    if not PROJECT_ID_PATTERN.match(value):
        raise ValidationError("project_id", "Invalid project id", value)
    return value


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_date_range(
    start_date: str,
    end_date: str,
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[date, date]:
    """
    Validate a date range.

    Returns:
        Tuple of (start_date, end_date) as date objects

    Raises:
        ValidationError: If dates are invalid or range is too large
    """
    start = validate_date_string(start_date, "start_date")
    end = validate_date_string(end_date, "end_date")

    if start > end:
        raise ValidationError(
            "date_range",
            "Start date must be before or equal to end date",
            f"{start_date} to {end_date}"
        )

    if (end - start).days > max_days:
        raise ValidationError(
            "date_range",
            f"Date range cannot exceed {max_days} days",
            f"{start_date} to {end_date}"
        )

    return start, end


def validate_timestamp_range(
    start_ts: int,
    end_ts: int,
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[int, int]:
    """
    Validate an inclusive millisecond range.

    Raises:
        ValidationError: If either bound is negative, reversed, or too wide
    """
    for field, value in (("start_ts", start_ts), ("end_ts", end_ts)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field, "Must be an integer timestamp in milliseconds", value)
        if value < 0:
            raise ValidationError(field, "Must not be negative", value)

    if start_ts > end_ts:
        raise ValidationError(
            "time_range",
            "start_ts must be before or equal to end_ts",
            f"{start_ts} to {end_ts}"
        )

    if end_ts - start_ts > (max_days + 1) * MS_PER_DAY:
        raise ValidationError(
            "time_range",
            f"Time range cannot exceed {max_days} days",
            f"{start_ts} to {end_ts}"
        )

    return start_ts, end_ts


def _day_start_ms(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp() * 1000)


def resolve_time_range(
    start_ts: Optional[int] = None,
    end_ts: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Tuple[int, int]:
    """
    Resolve query parameters into an inclusive (start_ts, end_ts) range.

    Explicit timestamps win. Otherwise both dates are required and cover
    whole UTC days: start_date 00:00:00.000 to end_date 23:59:59.999.

    Raises:
        ValidationError: If neither form is complete or values are invalid
    """
    if start_ts is not None or end_ts is not None:
        if start_ts is None or end_ts is None:
            raise ValidationError("time_range", "Both start_ts and end_ts are required")
        return validate_timestamp_range(start_ts, end_ts)

    if start_date is None or end_date is None:
        raise ValidationError(
            "time_range",
            "Provide start_ts/end_ts or start_date/end_date"
        )

    start, end = validate_date_range(start_date, end_date)
    return _day_start_ms(start), _day_start_ms(end) + MS_PER_DAY - 1
