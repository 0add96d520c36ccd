"""
Registration and attendance workflows.

Both services take an extractor object exposing ``extract(image)`` which
returns a descriptor tuple or None when no face is found. Blocking work
(model inference and file I/O) runs in the threadpool.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from database import AttendanceLog, FaceStore
from errors import ValidationError
from matcher import DEFAULT_THRESHOLD, Matched, match
from models import AttendanceEvent, FaceRecord, Signature, utcnow

logger = logging.getLogger("face_attendance.services")


class RegistrationOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    NO_FACE_DETECTED = "no_face_detected"


class AttendanceOutcome(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    NO_FACE_DETECTED = "no_face_detected"
    NO_REGISTERED_FACES = "no_registered_faces"


@dataclass(frozen=True)
class RegistrationResult:
    outcome: RegistrationOutcome
    name: str
    total_registered: Optional[int] = None


@dataclass(frozen=True)
class AttendanceResult:
    outcome: AttendanceOutcome
    event: Optional[AttendanceEvent] = None
    best_distance: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.outcome == AttendanceOutcome.MATCHED

    @property
    def name(self) -> Optional[str]:
        return self.event.name if self.event else None

    @property
    def confidence(self) -> Optional[int]:
        return self.event.confidence if self.event else None

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.event.timestamp if self.event else None


def require_image(image: Optional[str]) -> str:
    if not image or not image.strip():
        raise ValidationError("Image is required")
    return image


async def extract_descriptor(extractor, image: Optional[str]) -> Optional[Signature]:
    """Run the extractor off the event loop. None means no face was found."""
    return await run_in_threadpool(extractor.extract, require_image(image))


class RegistrationService:
    def __init__(self, extractor, store: FaceStore):
        self.extractor = extractor
        self.store = store

    async def register(self, name: Optional[str], image: Optional[str]) -> RegistrationResult:
        if not name or not name.strip() or not image or not image.strip():
            raise ValidationError("Name and image are required")
        name = name.strip()

        logger.info("Registering face for: %s", name)
        signature = await extract_descriptor(self.extractor, image)
        if signature is None:
            logger.info("No face detected while registering %s", name)
            return RegistrationResult(RegistrationOutcome.NO_FACE_DETECTED, name)

        record = FaceRecord(name=name, signature=signature, registered_at=utcnow())
        inserted, total = await run_in_threadpool(self.store.register, record)

        if inserted:
            logger.info("New face registered for: %s", name)
            outcome = RegistrationOutcome.INSERTED
        else:
            logger.info("Updated existing record for: %s", name)
            outcome = RegistrationOutcome.UPDATED
        return RegistrationResult(outcome, name, total)


class AttendanceService:
    def __init__(self, extractor, store: FaceStore, log: AttendanceLog,
                 threshold: float = DEFAULT_THRESHOLD):
        self.extractor = extractor
        self.store = store
        self.log = log
        self.threshold = threshold

    async def check_in(self, image: Optional[str]) -> AttendanceResult:
        require_image(image)
        logger.info("Processing attendance scan...")

        # An empty store is reported before running the model
        records = await run_in_threadpool(self.store.load)
        if not records:
            return AttendanceResult(AttendanceOutcome.NO_REGISTERED_FACES)

        signature = await extract_descriptor(self.extractor, image)
        if signature is None:
            return AttendanceResult(AttendanceOutcome.NO_FACE_DETECTED)

        result = match(signature, records, self.threshold)
        if isinstance(result, Matched):
            event = AttendanceEvent(name=result.name, confidence=result.confidence, timestamp=utcnow())
            await run_in_threadpool(self.log.append, event)
            logger.info("Attendance marked for: %s (confidence: %d%%)", event.name, event.confidence)
            return AttendanceResult(
                AttendanceOutcome.MATCHED,
                event=event,
                best_distance=result.distance,
            )

        logger.info("No match found (best distance: %.3f)", result.best_distance)
        return AttendanceResult(AttendanceOutcome.UNMATCHED, best_distance=result.best_distance)
