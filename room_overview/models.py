"""Data models for bookings mirrored from the remote booking API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .time_normalizer import to_utc


class Booking(BaseModel):
    """A single reserved time interval for a room.

    ALL DATETIMES ARE UTC. Naive datetimes are rejected on construction,
    aware datetimes in other offsets are converted.

    Two bookings with the same ``booking_id`` are "unchanged" exactly when
    the models compare equal (title, resource, start and end all match).
    """

    booking_id: int = Field(..., description="Remote booking id, stable across updates")
    resource_id: int = Field(
        ..., description="Remote resource (room) id; NOT the id of the booking"
    )
    title: str = Field(default="", description="Booking title in the remote system")
    start_time: datetime = Field(..., description="Start instant (UTC)")
    end_time: datetime = Field(..., description="End instant (UTC)")

    model_config = ConfigDict(frozen=True)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_to_utc(cls, value: datetime) -> datetime:
        """Normalize timestamps to UTC."""
        return to_utc(value)

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()

    def is_active_at(self, instant: datetime) -> bool:
        """Whether the booking covers ``instant`` (inclusive on both ends)."""
        return self.start_time <= instant <= self.end_time
