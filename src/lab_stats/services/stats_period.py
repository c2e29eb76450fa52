"""
Reporting period resolution.

Turns an optional user-selected window into concrete filter and comparison
windows in the laboratory timezone.
"""
from typing import Optional, Union
from datetime import date, datetime, timedelta
import logging

from lab_stats.services.stats_types import ReportingPeriod
from lab_stats.utils.datetime_utils import (
    ensure_lab_tz,
    lab_now,
    month_bounds,
    start_of_day,
    end_of_day,
)

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


class PeriodResolver:
    """
    Resolves the filter window, the equally long comparison window right before
    it and the year shown in the monthly trend.
    """

    @staticmethod
    def resolve(
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        selected_year: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> ReportingPeriod:
        """
        Resolve the reporting period.

        Args:
            start_date: Inclusive window start. A plain date means the start of that day.
            end_date: Inclusive window end. A plain date means the end of that day.
            selected_year: Year for the trend; defaults to the year of the window start.
            now: Reference instant for the default window (current month).

        Returns:
            ReportingPeriod with filter, comparison and trend year
        """
        current = ensure_lab_tz(now) if now is not None else lab_now()
        month_start, month_end = month_bounds(current.year, current.month)  # type: ignore[union-attr]

        filter_start = PeriodResolver._coerce_start(start_date) if start_date is not None else month_start
        filter_end = PeriodResolver._coerce_end(end_date) if end_date is not None else month_end

        if filter_end < filter_start:
            logger.warning(f"Reporting window ends before it starts: {filter_start} > {filter_end}")

        duration = filter_end - filter_start
        comparison_end = filter_start - timedelta(microseconds=1)
        comparison_start = comparison_end - duration

        return ReportingPeriod(
            filter_start=filter_start,
            filter_end=filter_end,
            comparison_start=comparison_start,
            comparison_end=comparison_end,
            trend_year=selected_year if selected_year is not None else filter_start.year
        )

    @staticmethod
    def _coerce_start(value: DateLike) -> datetime:
        if isinstance(value, datetime):
            return ensure_lab_tz(value)  # type: ignore[return-value]
        return start_of_day(value)

    @staticmethod
    def _coerce_end(value: DateLike) -> datetime:
        if isinstance(value, datetime):
            return ensure_lab_tz(value)  # type: ignore[return-value]
        return end_of_day(value)
