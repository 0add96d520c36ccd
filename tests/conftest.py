import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import AttendanceLog, FaceStore
from main import create_app


class FakeExtractor:
    """Maps image strings to descriptors; unknown images have no face."""

    def __init__(self, faces=None):
        self.faces = dict(faces or {})
        self.calls = []

    def extract(self, image):
        self.calls.append(image)
        signature = self.faces.get(image)
        return tuple(signature) if signature is not None else None


@pytest.fixture
def settings(tmp_path):
    return Settings(
        faces_db_path=tmp_path / "data" / "faces.json",
        attendance_log_path=tmp_path / "data" / "attendance.json",
        match_threshold=0.6,
        request_log_file=None,
        cors_origins=["*"],
    )


@pytest.fixture
def extractor():
    return FakeExtractor({
        "alice.jpg": [0.0, 0.0],
        "alice-again.jpg": [0.0, 0.1],
        "bob.jpg": [10.0, 10.0],
        "stranger.jpg": [5.0, 5.0],
    })


@pytest.fixture
def face_store(settings):
    return FaceStore(settings.faces_db_path)


@pytest.fixture
def attendance_log(settings):
    return AttendanceLog(settings.attendance_log_path)


@pytest.fixture
def client(settings, extractor):
    app = create_app(settings, extractor=extractor)
    with TestClient(app) as test_client:
        yield test_client
