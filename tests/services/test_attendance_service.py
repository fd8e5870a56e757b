import uuid
from datetime import date, datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from school_attendance.backend.config.config import settings
from school_attendance.backend.models.db_models import AttendanceRecord, EventType, UserRole
from school_attendance.backend.modules.school_calendar import day_bounds
from school_attendance.backend.services.attendance_service import AttendanceService
from school_attendance.backend.services.errors import InvalidDataError, NotFoundError, PersistenceError
from tests.factories import make_employee, make_record, make_student, utc

# conftest pins SCHOOL_TIMEZONE to Manila
MANILA = ZoneInfo("Asia/Manila")


@pytest_asyncio.fixture
async def service_instance():
    """Creates an AttendanceService with a mocked database client and user lookup."""
    mock_db_client = AsyncMock()
    mock_user_service = AsyncMock()
    service = AttendanceService(db_client=mock_db_client, user_service=mock_user_service)
    return service, mock_db_client, mock_user_service


@pytest.mark.asyncio
class TestAttendanceService:

    # --- Recording events ---

    async def test_sign_in_stamps_the_user_and_appends_a_record(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        student = make_student()
        mock_user_service.find_user_by_code.return_value = (UserRole.STUDENT, student)
        moment = utc(2024, 3, 1, 0, 5)

        record = await service.record_event("S-001", EventType.SIGN_IN, now=moment)

        mock_db_client.stamp_sign_time.assert_awaited_once_with(UserRole.STUDENT, student.id, EventType.SIGN_IN, moment)
        saved = mock_db_client.add_attendance_record.call_args[0][0]
        assert isinstance(saved, AttendanceRecord)
        assert saved == record
        assert (saved.user_id, saved.user_type, saved.event_type, saved.timestamp) == (
            student.id, UserRole.STUDENT, EventType.SIGN_IN, moment
        )

    async def test_last_millisecond_of_the_day_stays_in_that_day(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        mock_user_service.find_user_by_code.return_value = (UserRole.STUDENT, make_student())
        moment = datetime(2024, 3, 1, 23, 59, 59, 999500, tzinfo=MANILA)

        record = await service.record_event("S-001", EventType.SIGN_IN, now=moment)

        start, end = day_bounds(date(2024, 3, 1), MANILA)
        assert record.timestamp == datetime(2024, 3, 1, 23, 59, 59, 999000, tzinfo=MANILA)
        assert start <= record.timestamp <= end
        assert mock_db_client.stamp_sign_time.call_args[0][3] == record.timestamp

    async def test_sign_out_of_an_employee(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        employee = make_employee()
        mock_user_service.find_user_by_code.return_value = (UserRole.EMPLOYEE, employee)

        record = await service.record_event("E-001", EventType.SIGN_OUT)

        assert record.user_type == UserRole.EMPLOYEE
        assert record.event_type == EventType.SIGN_OUT
        assert mock_db_client.stamp_sign_time.call_args[0][2] == EventType.SIGN_OUT

    async def test_scanning_twice_records_twice(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        mock_user_service.find_user_by_code.return_value = (UserRole.STUDENT, make_student())

        await service.record_event("S-001", EventType.SIGN_IN)
        await service.record_event("S-001", EventType.SIGN_IN)

        assert mock_db_client.add_attendance_record.await_count == 2

    async def test_unknown_code_records_nothing(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        mock_user_service.find_user_by_code.side_effect = NotFoundError("User not found")

        with pytest.raises(NotFoundError):
            await service.record_event("NOPE", EventType.SIGN_IN)

        mock_db_client.stamp_sign_time.assert_not_called()
        mock_db_client.add_attendance_record.assert_not_called()

    async def test_failed_stamp_is_a_persistence_error(self, service_instance):
        service, mock_db_client, mock_user_service = service_instance
        mock_user_service.find_user_by_code.return_value = (UserRole.STUDENT, make_student())
        mock_db_client.stamp_sign_time.side_effect = ConnectionError("db down")

        with pytest.raises(PersistenceError):
            await service.record_event("S-001", EventType.SIGN_IN)

        mock_db_client.add_attendance_record.assert_not_called()

    # --- Queries ---

    async def test_records_for_day_queries_the_local_day(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.get_attendance_between.return_value = []

        await service.records_for_day("2024-03-01", UserRole.TEACHER)

        start, end = mock_db_client.get_attendance_between.call_args[0]
        assert start == datetime(2024, 3, 1, tzinfo=MANILA)
        assert end == datetime(2024, 3, 1, 23, 59, 59, 999000, tzinfo=MANILA)
        assert mock_db_client.get_attendance_between.call_args.kwargs["user_type"] == UserRole.TEACHER

    @pytest.mark.parametrize("day", ["", "not-a-date"])
    async def test_records_for_day_rejects_bad_dates(self, service_instance, day):
        service, mock_db_client, _ = service_instance

        with pytest.raises(InvalidDataError):
            await service.records_for_day(day)

        mock_db_client.get_attendance_between.assert_not_called()

    async def test_unknown_school_zone_is_not_a_bad_date(self, service_instance, monkeypatch):
        service, mock_db_client, _ = service_instance
        monkeypatch.setattr(settings, "SCHOOL_TIMEZONE", "Mars/Olympus_Mons")

        with pytest.raises(ValueError, match="SCHOOL_TIMEZONE"):
            await service.records_for_day("2024-03-01")

        mock_db_client.get_attendance_between.assert_not_called()

    async def test_summary_for_day_aggregates(self, service_instance):
        service, mock_db_client, _ = service_instance
        user_id = uuid.uuid4()
        mock_db_client.get_attendance_between.return_value = [
            make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 0)),
            make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 10)),
            make_record(user_id, EventType.SIGN_OUT, utc(2024, 3, 1, 9, 0)),
        ]

        [summary] = await service.summary_for_day("2024-03-01")

        assert summary.sign_in_time == utc(2024, 3, 1, 0, 0)
        assert summary.sign_out_time == utc(2024, 3, 1, 9, 0)

    async def test_my_attendance(self, service_instance):
        service, mock_db_client, _ = service_instance
        user_id = uuid.uuid4()
        mock_db_client.get_attendance_for_user.return_value = [
            make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 0), user_type=UserRole.TEACHER),
            make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 4, 0, 0), user_type=UserRole.TEACHER),
        ]

        summaries = await service.my_attendance(UserRole.TEACHER, user_id)

        assert [s.day.isoformat() for s in summaries] == ["2024-03-01", "2024-03-04"]
        mock_db_client.get_attendance_for_user.assert_awaited_once_with(user_id, UserRole.TEACHER)

    async def test_query_failure_is_a_persistence_error(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.get_attendance_between.side_effect = ConnectionError("db down")

        with pytest.raises(PersistenceError):
            await service.records_for_day("2024-03-01")

    # --- Daily reset ---

    async def test_reset_stale_sign_times_clears_every_table_before_local_midnight(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.clear_stale_sign_times.side_effect = ["UPDATE 3", "UPDATE 1", "UPDATE 0"]

        # 16:30 UTC on March 1st is 00:30 on March 2nd in Manila
        counts = await service.reset_stale_sign_times(now=utc(2024, 3, 1, 16, 30))

        assert counts == {"Student": 3, "Teacher": 1, "Employee": 0}
        cutoffs = {c.args[1] for c in mock_db_client.clear_stale_sign_times.call_args_list}
        assert cutoffs == {datetime(2024, 3, 2, tzinfo=MANILA)}
