"""
Effective date of benefits coverage.

Rule: a hire in the current calendar month gets coverage from the first day
of next month; an older hire gets coverage from today. Future hires fail.
"""

from __future__ import annotations

from datetime import date

from ..crosscutting.exceptions import BusinessRuleError

FUTURE_HIRE_DATE = "FUTURE_HIRE_DATE"


def first_day_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def calculate_effective_date(hire_date: date, today: date) -> date:
    """
    Raises:
        BusinessRuleError: hire_date is strictly after today.
    """
    if hire_date > today:
        raise BusinessRuleError(f"{FUTURE_HIRE_DATE}: hireDate cannot be in the future")

    if (hire_date.year, hire_date.month) == (today.year, today.month):
        return first_day_of_next_month(today)

    return today
