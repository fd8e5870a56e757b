from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class UserSessionRedis(BaseModel):
    """
    Represents a signed-in user's session stored in Redis.
    A bearer token is only honoured while its session key exists.
    """
    user_id: str = Field(..., description="Row id of the user, or 'admin' for the admin account.")
    role: str = Field(..., description="One of admin, student, teacher, employee.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")
