from __future__ import annotations

import calendar
import logging
from datetime import date
from enum import Enum

from dateutil.relativedelta import relativedelta

from .errors import InvalidPeriodError
from .store import RowStore, Workbook

logger = logging.getLogger(__name__)


class Period(str, Enum):
    MONTH = "month"
    YEAR = "year"


def _coerce_period(period: Period | str) -> Period:
    try:
        return Period(period)
    except ValueError as e:
        raise InvalidPeriodError(f"Period not found: {period}") from e


def monthly_sheet_name(abbreviated: bool = True, shift: int = 0, today: date | None = None) -> str:
    """JAN20 style (abbreviated) or "January 2020" style sheet name."""
    d = (today or date.today()) + relativedelta(months=shift)
    month = calendar.month_name[d.month]
    if abbreviated:
        return f"{month[:3].upper()}{d.year % 100:02d}"
    return f"{month} {d.year}"


def yearly_sheet_name(shift: int = 0, today: date | None = None) -> str:
    d = (today or date.today()) + relativedelta(years=shift)
    return str(d.year)


def periodic_sheet_name(
    period: Period | str = Period.MONTH,
    abbreviated: bool = True,
    shift: int = 0,
    today: date | None = None,
) -> str:
    period = _coerce_period(period)
    if period is Period.MONTH:
        return monthly_sheet_name(abbreviated, shift, today)
    return yearly_sheet_name(shift, today)


def get_or_create_sheet(workbook: Workbook, name: str, template_name: str | None = None) -> RowStore:
    existing = workbook.table(name)
    if existing is not None:
        return existing
    if template_name:
        logger.info("creating sheet %r from template %r", name, template_name)
        return workbook.duplicate_table(template_name, name)
    logger.info("creating sheet %r", name)
    return workbook.add_table(name)


def get_periodic_sheet(
    workbook: Workbook,
    period: Period | str = Period.MONTH,
    abbreviated: bool = True,
    shift: int = 0,
    template_name: str | None = None,
    today: date | None = None,
) -> RowStore:
    """Sheet for the current month/year (or shifted by `shift` periods).

    Created on first use, as a copy of `template_name` when given.
    """
    name = periodic_sheet_name(period, abbreviated, shift, today)
    return get_or_create_sheet(workbook, name, template_name)
