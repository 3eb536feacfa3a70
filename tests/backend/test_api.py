"""Tests for the wind rose API."""
import time

import pytest
from fastapi.testclient import TestClient

from backend.api.dependencies import get_rose_service
from backend.main import app
from backend.services.rose_service import RoseService
from windrose.models.options import RoseOptions
from windrose.models.reading import Reading
from windrose.services.aggregator import WindRose
from windrose.services.history_codec import encode_delta
from windrose.services.history_log import HistoryLog

STYLE = {"speed5": "#0000ff", "speed10": "#00ff00", "speedmax": "#ff0000"}
BANDS = [5, 10, 200]
T0 = 1_700_000_000_000


def make_service(history_size=100):
    rose = WindRose(RoseOptions(id="test", freq_step=10), style=STYLE)
    return RoseService(rose=rose, history_log=HistoryLog(history_size=history_size))


@pytest.fixture
def rose_service():
    """Rose service with an in-memory history log."""
    return make_service()


@pytest.fixture
def client(rose_service):
    """Test client bound to the rose service fixture."""
    app.dependency_overrides[get_rose_service] = lambda: rose_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def wait_for_preload(client, timeout=5.0):
    """Poll the rose until the background preload has finished."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/rose").json()
        if not body["preloading"]:
            return body
        time.sleep(0.01)
    raise AssertionError("Preload did not finish")


class TestRoot:
    """Tests for the service endpoints."""

    def test_root(self, client):
        """Root describes the API."""
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Wind Rose API"
        assert body["rose"] == "test"

    def test_health(self, client):
        """Health check reports the window and log sizes."""
        client.post("/readings", json={"dir": 10, "speed": 3, "when": T0})
        assert client.get("/health").json() == {
            "status": "healthy",
            "readings": 1,
            "history": 1,
            "preloading": False,
            "preload_error": None,
        }


class TestReadings:
    """Tests for POST /readings."""

    def test_record_reading(self, client):
        """A reading lands in both the log and the rose."""
        response = client.post("/readings", json={"dir": 100, "speed": 7, "when": T0})
        assert response.status_code == 200
        assert response.json() == {"recorded": True, "inserted": True}

        body = client.get("/rose").json()
        assert body["total"] == 1
        assert body["counts"][5] == [0, 1, 0]

    def test_duplicate_reading(self, client):
        """A repeated reading is logged but not counted twice."""
        reading = {"dir": 100, "speed": 7, "when": T0}
        client.post("/readings", json=reading)
        response = client.post("/readings", json=reading)
        assert response.json() == {"recorded": True, "inserted": False}
        assert client.get("/rose").json()["total"] == 1

    def test_seconds_timestamp(self, client, rose_service):
        """Second timestamps are stored as ms everywhere."""
        client.post("/readings", json={"dir": 10, "speed": 3, "when": T0 / 1000})
        assert rose_service.rose.readings[0].when == T0
        assert rose_service.history_log.readings[0].when == T0

    def test_negative_speed_rejected(self, client):
        """Speeds must not be negative."""
        response = client.post("/readings", json={"dir": 10, "speed": -1})
        assert response.status_code == 422


class TestHistory:
    """Tests for POST /history."""

    @pytest.fixture(autouse=True)
    def readings(self, client):
        for i in range(3):
            client.post("/readings", json={"dir": i * 20, "speed": 3, "when": T0 + i * 1000})

    def test_simple(self, client):
        """Requests without geometry get the simple format."""
        response = client.post("/history", json={"id": "req-1"})
        assert response.status_code == 200
        body = response.json()
        assert body["format"] == "simple"
        assert body["id"] == "req-1"
        assert len(body["records"]) == 9

    def test_delta(self, client):
        """Requests with geometry get the delta format."""
        response = client.post(
            "/history", json={"numarcs": 18, "bands": BANDS, "when": T0, "nonce": 42}
        )
        body = response.json()
        assert body["format"] == "delta"
        assert body["records"] == [1, 1]
        assert body["nonce"] == 42

    def test_invalid_request(self, client):
        """numarcs must be positive."""
        assert client.post("/history", json={"numarcs": 0}).status_code == 422


def test_history_disabled():
    """A service without a history log answers 404."""
    app.dependency_overrides[get_rose_service] = lambda: make_service(history_size=0)
    try:
        with TestClient(app) as client:
            assert client.post("/history", json={}).status_code == 404
    finally:
        app.dependency_overrides.clear()


class TestRose:
    """Tests for the /rose endpoints."""

    def test_empty_rose(self, client):
        """An empty rose has bands and a key but no scale."""
        body = client.get("/rose").json()
        assert body["id"] == "test"
        assert body["total"] == 0
        assert body["bands"] == BANDS
        assert body["scale"] is None
        assert len(body["key"]) == 3

    def test_wedges(self, client):
        """Readings produce wedges and scale rings."""
        client.post("/readings", json={"dir": 0, "speed": 3, "when": T0})
        client.post("/readings", json={"dir": 90, "speed": 0, "when": T0 + 1000})
        body = client.get("/rose").json()
        assert body["scale"]["freqsteps"] == 5
        assert [(w["arc"], w["band"]) for w in body["wedges"]] == [(0, 0)]
        assert body["calm_radius"] == 100
        assert len(body["scale_rings"]) == 5

    def test_pointer_needs_readings(self, client):
        """Without two readings there is no pointer."""
        assert client.get("/rose/pointer").status_code == 404

    def test_pointer(self, client):
        """Old readings leave the pointer resting on the newest one."""
        client.post("/readings", json={"dir": 0, "speed": 2, "when": T0})
        client.post("/readings", json={"dir": 90, "speed": 8, "when": T0 + 1000})
        response = client.get("/rose/pointer")
        assert response.status_code == 200
        body = response.json()
        assert body["speed"] == pytest.approx(8)
        assert body["band"] == 1
        assert body["label"] == "8.0m/s"


class TestPreload:
    """Tests for POST /rose/preload."""

    def test_preload(self, client):
        """A delta payload is applied in the background."""
        source = [Reading(direction=i * 20, speed=3, when=T0 + i * 1000) for i in range(30)]
        response = client.post("/rose/preload", json=encode_delta(source, 18, BANDS))
        assert response.status_code == 202
        assert response.json() == {"status": "preloading"}

        body = wait_for_preload(client)
        assert body["total"] == 30

    def test_malformed_payload(self, client):
        """Malformed payloads are rejected up front."""
        response = client.post("/rose/preload", json={"format": "delta", "records": [1]})
        assert response.status_code == 400
        assert client.get("/rose").json()["total"] == 0

    def test_geometry_mismatch(self, client):
        """Payloads for another geometry are rejected."""
        payload = encode_delta([Reading(direction=0, speed=3, when=T0)], 16, BANDS)
        assert client.post("/rose/preload", json=payload).status_code == 400


def test_preload_on_startup():
    """The rose is backfilled from the history log on startup."""
    service = make_service()
    for i in range(10):
        service.history_log.append(i * 36, 4, T0 + i * 1000)
    app.dependency_overrides[get_rose_service] = lambda: service
    try:
        with TestClient(app) as client:
            body = wait_for_preload(client)
            assert body["total"] == 10
    finally:
        app.dependency_overrides.clear()


def test_failed_preload_reported_by_health():
    """A preload that fails in the background marks the service unhealthy."""
    service = make_service()
    service.rose._counts[0, 0] += 1
    app.dependency_overrides[get_rose_service] = lambda: service
    try:
        with TestClient(app) as client:
            source = [Reading(direction=0, speed=3, when=T0 + i * 1000) for i in range(3)]
            response = client.post("/rose/preload", json=encode_delta(source, 18, BANDS))
            assert response.status_code == 202

            deadline = time.monotonic() + 5.0
            body = client.get("/health").json()
            while body["status"] != "unhealthy" and time.monotonic() < deadline:
                time.sleep(0.01)
                body = client.get("/health").json()
            assert body["status"] == "unhealthy"
            assert "RoseConsistencyError" in body["preload_error"]
            assert body["preloading"] is False
    finally:
        app.dependency_overrides.clear()


@pytest.mark.parametrize("body", [
    '{"format": "delta", "when": %d, "step": 1000, "bands": 5, "records": [0]}' % T0,
    '{"format": "delta", "when": %d, "step": 1000, "records": [Infinity]}' % T0,
])
def test_preload_rejects_malformed_values(body):
    """Wrongly typed bands and non-finite records are client errors."""
    app.dependency_overrides[get_rose_service] = lambda: make_service()
    try:
        with TestClient(app) as client:
            response = client.post(
                "/rose/preload", content=body, headers={"Content-Type": "application/json"}
            )
            assert response.status_code == 400
    finally:
        app.dependency_overrides.clear()
