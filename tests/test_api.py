from fastapi.testclient import TestClient

from main import create_app


def register(client, name, image):
    return client.post("/api/register", json={"name": name, "image": image})


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["ready"] is True
    assert body["threshold"] == 0.6


def test_recognition_routes_wait_for_startup(settings, extractor):
    app = create_app(settings, extractor=extractor)
    client = TestClient(app)  # lifespan not started

    response = client.post("/api/attendance", json={"image": "alice.jpg"})

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert client.get("/api/health").json()["ready"] is False


def test_extract_descriptor(client):
    response = client.post("/api/extract-descriptor", json={"image": "bob.jpg"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "descriptor": [10.0, 10.0],
        "message": "Face descriptor extracted successfully",
    }


def test_extract_descriptor_without_face(client):
    response = client.post("/api/extract-descriptor", json={"image": "blank-wall.jpg"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_register_and_list_faces(client):
    first = register(client, "Alice", "alice.jpg")
    second = register(client, "Bob", "bob.jpg")
    again = register(client, "alice", "alice-again.jpg")

    assert first.status_code == 200
    assert first.json()["totalRegistered"] == 1
    assert second.json()["totalRegistered"] == 2
    assert again.json() == {
        "success": True,
        "message": "Face registered successfully for alice",
        "totalRegistered": 2,
    }

    faces = client.get("/api/faces").json()
    assert faces["success"] is True
    assert faces["count"] == 2
    assert [f["name"] for f in faces["faces"]] == ["alice", "Bob"]
    assert set(faces["faces"][0]) == {"name", "registeredAt"}


def test_register_requires_name_and_image(client):
    response = client.post("/api/register", json={"image": "alice.jpg"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Name and image are required"}


def test_register_without_face(client):
    response = register(client, "Alice", "blank-wall.jpg")

    assert response.status_code == 400
    assert client.get("/api/faces").json()["count"] == 0


def test_malformed_body_is_a_bad_request(client):
    response = client.post(
        "/api/register", content="not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_attendance_match_is_logged(client):
    register(client, "Alice", "alice.jpg")
    register(client, "Bob", "bob.jpg")

    response = client.post("/api/attendance", json={"image": "alice-again.jpg"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["matched"] is True
    assert body["name"] == "Alice"
    assert body["confidence"] == 90
    assert body["message"] == "Attendance marked for Alice"

    log = client.get("/api/attendance").json()
    assert log["count"] == 1
    assert log["records"] == [{"name": "Alice", "timestamp": body["timestamp"], "confidence": 90}]


def test_attendance_unmatched_is_still_a_success(client):
    register(client, "Alice", "alice.jpg")

    response = client.post("/api/attendance", json={"image": "stranger.jpg"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "matched": False,
        "message": "Face not recognized. Please register first.",
    }
    assert client.get("/api/attendance").json()["count"] == 0


def test_attendance_with_no_registered_faces(client):
    response = client.post("/api/attendance", json={"image": "alice.jpg"})

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_attendance_without_face(client):
    register(client, "Alice", "alice.jpg")

    response = client.post("/api/attendance", json={"image": "blank-wall.jpg"})

    assert response.status_code == 400


def test_attendance_requires_image(client):
    response = client.post("/api/attendance", json={})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Image is required"}


def test_corrupt_store_is_a_generic_server_error(client, settings):
    settings.faces_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.faces_db_path.write_text("{broken", encoding="utf-8")

    response = client.post("/api/attendance", json={"image": "alice.jpg"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Server error during attendance check"}


def test_request_log_records_timing(settings, extractor, tmp_path):
    settings.request_log_file = str(tmp_path / "requests.log")
    app = create_app(settings, extractor=extractor)

    with TestClient(app) as client:
        response = client.get("/api/health")

    assert "X-Process-Time" in response.headers
    assert "GET /api/health" in (tmp_path / "requests.log").read_text(encoding="utf-8")
