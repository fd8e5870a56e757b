# tests/conftest.py
import asyncio
import os
import sys
import tempfile

# Settings are read once at import time, so the test environment has to be in
# place before anything from school_attendance is imported.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("ADMIN_EMAIL", "admin@school.test")
os.environ.setdefault("ADMIN_PASSWORD", "admin-password")
os.environ.setdefault("SCHOOL_TIMEZONE", "Asia/Manila")
os.environ.setdefault("RATE_LIMITER_REDIS_URL", "memory://")
os.environ.setdefault("IMAGE_UPLOAD_URL", "https://images.test/upload")
os.environ.setdefault("IMAGE_UPLOAD_PRESET", "school")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="school-attendance-logs-"))

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
