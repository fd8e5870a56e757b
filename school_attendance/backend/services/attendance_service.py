import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import AttendanceRecord, AttendanceSummary, EventType, UserRole
from ..modules.attendance_aggregator import summarize_daily_attendance
from ..modules.school_calendar import (
    InvalidDateError, day_bounds, local_day, parse_query_date, school_timezone
)
from .errors import InvalidDataError, PersistenceError
from .user_service import LOOKUP_ORDER, UserService, affected_rows

logger = logging.getLogger(__name__)


class AttendanceService:
    """
    Records badge sign-in/sign-out events and answers the attendance queries.
    """
    def __init__(self, db_client: AsyncPostgresClient, user_service: UserService):
        self.db_client = db_client
        self.user_service = user_service

    async def record_event(self, code: str, event_type: EventType, now: Optional[datetime] = None) -> AttendanceRecord:
        """
        Stamps the matching user's sign_in_time or sign_out_time and appends an
        attendance row with the same instant. Nothing is de-duplicated: scanning
        twice records two events, and the daily summary keeps the first.
        """
        role, user = await self.user_service.find_user_by_code(code)
        moment = now or datetime.now(timezone.utc)
        # Day bounds end at 23:59:59.999, so stamps keep whole milliseconds only
        moment = moment.replace(microsecond=moment.microsecond // 1000 * 1000)
        record = AttendanceRecord(
            id=uuid4(),
            user_id=user.id,
            user_type=role,
            event_type=event_type,
            timestamp=moment,
        )
        try:
            await self.db_client.stamp_sign_time(role, user.id, event_type, moment)
            await self.db_client.add_attendance_record(record)
        except Exception as e:
            logger.error(f"Error recording {event_type.value} for {role.value} '{code}'.", exc_info=True)
            raise PersistenceError(f"Error recording {event_type.value}") from e

        logger.info(f"{role.value} '{code}' recorded {event_type.value} at {moment.isoformat()}.")
        return record

    async def my_attendance(self, role: UserRole, user_id: UUID) -> List[AttendanceSummary]:
        """Every day the user has events for, oldest first."""
        try:
            records = await self.db_client.get_attendance_for_user(user_id, role)
        except Exception as e:
            logger.error(f"Error fetching attendance of {role.value} {user_id}.", exc_info=True)
            raise PersistenceError("Error fetching attendance") from e
        return summarize_daily_attendance(records)

    async def records_for_day(self, day: str, user_type: Optional[UserRole] = None) -> List[AttendanceRecord]:
        """Raw events of one local calendar day, optionally limited to one user type."""
        try:
            tz = school_timezone()
            start, end = day_bounds(parse_query_date(day, tz), tz)
        except InvalidDateError as e:
            raise InvalidDataError(str(e)) from e

        try:
            return await self.db_client.get_attendance_between(start, end, user_type=user_type)
        except Exception as e:
            logger.error(f"Error fetching attendance records for '{day}'.", exc_info=True)
            raise PersistenceError("Error fetching attendance records") from e

    async def summary_for_day(self, day: str, user_type: Optional[UserRole] = None) -> List[AttendanceSummary]:
        records = await self.records_for_day(day, user_type)
        return summarize_daily_attendance(records)

    async def reset_stale_sign_times(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Clears sign times left over from earlier days on every user table.
        Returns how many rows were reset per role.
        """
        tz = school_timezone()
        start_of_today, _ = day_bounds(local_day(now or datetime.now(timezone.utc), tz), tz)
        counts = {}
        for role in LOOKUP_ORDER:
            try:
                status = await self.db_client.clear_stale_sign_times(role, start_of_today)
            except Exception as e:
                logger.error(f"Error resetting stale sign times of {role.value} users.", exc_info=True)
                raise PersistenceError("Error resetting sign times") from e
            counts[role.value] = affected_rows(status)
        logger.info(f"Reset stale sign times: {counts}")
        return counts
