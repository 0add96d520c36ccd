"""
Pydantic models for the persisted documents and the HTTP request bodies.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Signature = Tuple[float, ...]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FaceRecord(BaseModel):
    """Registered identity with its face descriptor."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    signature: Signature = Field(..., alias="descriptor")
    registered_at: datetime = Field(default_factory=utcnow, alias="registeredAt")


class AttendanceEvent(BaseModel):
    """One successful attendance match. Never modified after creation."""
    model_config = ConfigDict(frozen=True)

    name: str
    timestamp: datetime = Field(default_factory=utcnow)
    confidence: int


FaceRecordList = TypeAdapter(List[FaceRecord])
AttendanceEventList = TypeAdapter(List[AttendanceEvent])


# Request bodies. Fields are optional so missing values reach the handlers
# and get reported with the API's own error shape.

class ImageRequest(BaseModel):
    image: Optional[str] = None


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None
