"""Calendar month arithmetic used by the billing cycle"""

import calendar
from datetime import date


def first_of_month(day: date) -> date:
    """Normalize a date to the first day of its month"""
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole calendar months, clamping to the target month's last day"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return with_day_clamped(date(year, month, 1), day.day)


def with_day_clamped(day: date, day_of_month: int) -> date:
    """
    Set the day-of-month, falling back to the month's last day when it doesn't exist.

    Example: with_day_clamped(date(2025, 2, 10), 31) -> date(2025, 2, 28)
    """
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=min(day_of_month, last_day))
