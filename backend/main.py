import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import HOST, PORT, Settings
from database import AttendanceLog, FaceStore
from errors import ValidationError
from logger_helper import create_logging_middleware, setup_app_logger, setup_logger
from models import ImageRequest, RegisterRequest
from services import (
    AttendanceOutcome,
    AttendanceService,
    RegistrationOutcome,
    RegistrationService,
    extract_descriptor,
)

logger = logging.getLogger("face_attendance.main")

NO_FACE_MESSAGE = "No face detected in the image. Please try again with a clear face photo."


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def not_ready() -> JSONResponse:
    return error_response(503, "Face recognizer is not ready")


def load_recognizer(settings: Settings):
    """Load the InsightFace model, retrying on CPU if GPU setup fails."""
    from recognition import FaceRecognizer

    det_size = (settings.det_size, settings.det_size)
    try:
        return FaceRecognizer(model_name=settings.model_name, det_size=det_size, use_gpu=settings.use_gpu)
    except Exception:
        if not settings.use_gpu:
            raise
        logger.exception("GPU initialization failed, falling back to CPU")
        return FaceRecognizer(model_name=settings.model_name, det_size=det_size, use_gpu=False)


def create_app(settings: Optional[Settings] = None, extractor=None) -> FastAPI:
    """
    Build the API. When no extractor is passed, the InsightFace model is
    loaded during startup and requests needing it get 503 until then.
    """
    settings = settings or Settings()
    setup_app_logger(settings.log_level)

    face_store = FaceStore(settings.faces_db_path)
    attendance_log = AttendanceLog(settings.attendance_log_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the face model before serving recognition requests."""
        face_extractor = extractor
        if face_extractor is None:
            face_extractor = await run_in_threadpool(load_recognizer, settings)

        app.state.extractor = face_extractor
        app.state.registration = RegistrationService(face_extractor, face_store)
        app.state.attendance = AttendanceService(
            face_extractor, face_store, attendance_log, threshold=settings.match_threshold
        )
        logger.info("Face recognizer ready (threshold %.2f)", settings.match_threshold)

        yield

        app.state.extractor = None
        logger.info("Shutting down...")

    app = FastAPI(
        title="Face Attendance Server",
        description="Face registration and attendance matching",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.face_store = face_store
    app.state.attendance_log = attendance_log
    app.state.extractor = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.request_log_file:
        create_logging_middleware(app, setup_logger(settings.request_log_file))

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(request: Request, exc: RequestValidationError):
        logger.debug("Rejected request body for %s: %s", request.url.path, exc.errors())
        return error_response(400, "Request body must be a JSON object")

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        ready = request.app.state.extractor is not None
        return {
            "status": "ok",
            "message": "Face Recognition Server is running",
            "ready": ready,
            "threshold": settings.match_threshold,
        }

    @app.post("/api/extract-descriptor")
    async def extract_face_descriptor(body: ImageRequest, request: Request):
        """Return the raw descriptor of the face in the image."""
        extractor_ = request.app.state.extractor
        if extractor_ is None:
            return not_ready()

        try:
            descriptor = await extract_descriptor(extractor_, body.image)
        except ValidationError as e:
            return error_response(400, str(e))
        except Exception:
            logger.exception("Extraction error")
            return error_response(500, "Server error during face extraction")

        if descriptor is None:
            return error_response(400, NO_FACE_MESSAGE)

        logger.info("Descriptor extracted (%d floats)", len(descriptor))
        return {
            "success": True,
            "descriptor": list(descriptor),
            "message": "Face descriptor extracted successfully",
        }

    @app.post("/api/register")
    async def register_face(body: RegisterRequest, request: Request):
        """Register a face, replacing any existing record with the same name."""
        registration = getattr(request.app.state, "registration", None)
        if request.app.state.extractor is None or registration is None:
            return not_ready()

        try:
            result = await registration.register(body.name, body.image)
        except ValidationError as e:
            return error_response(400, str(e))
        except Exception:
            logger.exception("Registration error")
            return error_response(500, "Server error during registration")

        if result.outcome == RegistrationOutcome.NO_FACE_DETECTED:
            return error_response(400, NO_FACE_MESSAGE)

        return {
            "success": True,
            "message": f"Face registered successfully for {result.name}",
            "totalRegistered": result.total_registered,
        }

    @app.post("/api/attendance")
    async def mark_attendance(body: ImageRequest, request: Request):
        """Mark attendance for the best matching registered face."""
        attendance = getattr(request.app.state, "attendance", None)
        if request.app.state.extractor is None or attendance is None:
            return not_ready()

        try:
            result = await attendance.check_in(body.image)
        except ValidationError as e:
            return error_response(400, str(e))
        except Exception:
            logger.exception("Attendance error")
            return error_response(500, "Server error during attendance check")

        if result.outcome == AttendanceOutcome.NO_FACE_DETECTED:
            return error_response(400, "No face detected in the image. Please try again.")
        if result.outcome == AttendanceOutcome.NO_REGISTERED_FACES:
            return error_response(404, "No faces registered yet. Please register first.")
        if result.outcome == AttendanceOutcome.UNMATCHED:
            return {
                "success": True,
                "matched": False,
                "message": "Face not recognized. Please register first.",
            }

        event = result.event.model_dump(mode="json")
        return {
            "success": True,
            "matched": True,
            "name": event["name"],
            "confidence": event["confidence"],
            "timestamp": event["timestamp"],
            "message": f"Attendance marked for {event['name']}",
        }

    @app.get("/api/faces")
    async def list_faces():
        """List registered names. Descriptors are never returned."""
        try:
            faces = await run_in_threadpool(face_store.load)
        except Exception:
            logger.exception("Failed to load face records")
            return error_response(500, "Server error while listing faces")

        return {
            "success": True,
            "count": len(faces),
            "faces": [face.model_dump(mode="json", by_alias=True, include={"name", "registered_at"})
                      for face in faces],
        }

    @app.get("/api/attendance")
    async def list_attendance():
        """Full attendance log in the order it was recorded."""
        try:
            records = await run_in_threadpool(attendance_log.list_all)
        except Exception:
            logger.exception("Failed to load attendance log")
            return error_response(500, "Server error while listing attendance")

        return {
            "success": True,
            "count": len(records),
            "records": [record.model_dump(mode="json") for record in records],
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=HOST, port=PORT)
