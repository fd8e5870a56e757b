import logging

from ..services.attendance_service import AttendanceService
from ..services.errors import ServiceError

logger = logging.getLogger(__name__)


async def reset_stale_sign_times_task(attendance_service: AttendanceService):
    """
    Runs once a day at local midnight. Clears sign_in_time/sign_out_time on
    every user whose sign-in stamp is from an earlier day, so the kiosk and
    profile views start each day blank. The attendance history is untouched.
    """
    logger.info("Running reset_stale_sign_times_task...")
    try:
        counts = await attendance_service.reset_stale_sign_times()
    except ServiceError as e:
        logger.error(f"Daily sign time reset failed: {e.message}")
        return
    logger.info(f"Daily sign time reset finished: {counts}")
