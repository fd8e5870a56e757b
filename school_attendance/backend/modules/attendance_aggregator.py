# school_attendance/backend/modules/attendance_aggregator.py

from datetime import date, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from ..models.db_models import AttendanceRecord, AttendanceSummary, EventType
from .school_calendar import local_day


def summarize_daily_attendance(
    records: Iterable[AttendanceRecord],
    tz: Optional[tzinfo] = None
) -> List[AttendanceSummary]:
    """
    Collapses a log of sign-in/sign-out events into one row per (user, calendar day).

    Args:
        records: Attendance events for any number of users.
        tz: Zone used to decide which calendar day an event belongs to.
            Defaults to the school's zone (or the server's local zone).

    Returns:
        Summary rows in the order their (user, day) was first seen, which is
        chronological by each row's earliest event. Within a day only the first
        sign-in and the first sign-out count; later ones are ignored. A day
        without a sign-out keeps sign_out_time as None, and nothing carries over
        into the next day.
    """
    summaries: Dict[Tuple[UUID, date], AttendanceSummary] = {}

    # sorted() is stable, so events with equal timestamps keep their input order
    for record in sorted(records, key=lambda r: r.timestamp):
        key = (record.user_id, local_day(record.timestamp, tz))

        summary = summaries.get(key)
        if summary is None:
            summary = AttendanceSummary(
                user_id=record.user_id,
                user_type=record.user_type,
                user=record.user,
                day=key[1],
            )
            summaries[key] = summary

        if record.event_type == EventType.SIGN_IN and summary.sign_in_time is None:
            summary.sign_in_time = record.timestamp
        elif record.event_type == EventType.SIGN_OUT and summary.sign_out_time is None:
            summary.sign_out_time = record.timestamp

        # later rows may carry a snapshot when the first one did not
        if summary.user is None and record.user is not None:
            summary.user = record.user

    # dicts keep insertion order
    return list(summaries.values())
