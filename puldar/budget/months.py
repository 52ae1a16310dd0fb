"""Calendar-month helpers. A month is identified by any date inside it."""

from datetime import date, datetime
from typing import Union


MonthIndex = int


def month_index(moment: Union[date, datetime]) -> MonthIndex:
    """Months since year 0; consecutive months differ by 1."""
    return moment.year * 12 + (moment.month - 1)


def month_from_index(index: MonthIndex) -> date:
    """First day of the month with the given index."""
    year, month_zero = divmod(index, 12)
    return date(year, month_zero + 1, 1)


def previous_month(moment: Union[date, datetime]) -> date:
    return month_from_index(month_index(moment) - 1)


def same_month(moment: Union[date, datetime], month: Union[date, datetime]) -> bool:
    return month_index(moment) == month_index(month)
