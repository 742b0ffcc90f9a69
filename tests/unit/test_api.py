"""
Unit tests for the tutor REST API.

The client is used without a context manager so the lifespan handler
does not run; each test installs its own local-only tutor session.

Run: pytest tests/unit/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.delivery.telemetry import InMemoryTelemetrySink
from src.generation.heuristic_rater import HeuristicRater
from src.generation.local_generator import LocalItemGenerator
from src.generation.orchestrator import ItemGenerationOrchestrator
from src.session.session_store import SessionStore
from src.session.tutor_session import TutorSession


@pytest.fixture
def client(tmp_path):
    orchestrator = ItemGenerationOrchestrator(
        generator=LocalItemGenerator(),
        rater=HeuristicRater(),
        telemetry=InMemoryTelemetrySink(),
    )
    app.state.tutor = TutorSession(SessionStore(tmp_path / "session.json"), orchestrator)
    return TestClient(app)


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "triangle-tutor"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["config"]["grade"] == 6


class TestTutorEndpoints:
    def test_graph(self, client):
        data = client.get("/api/tutor/graph").json()
        assert data["id"] == "g6.geometry.triangles.v1"
        assert len(data["levels"]) == 5

    def test_no_item_yet(self, client):
        assert client.get("/api/tutor/item").status_code == 404

    def test_submit_without_item_conflicts(self, client):
        response = client.post("/api/tutor/submit", json={"choice_id": "a"})
        assert response.status_code == 409

    def test_next_then_submit(self, client):
        data = client.post("/api/tutor/next").json()
        assert not data["topic_completed"]
        item = data["item"]
        assert item["concept_id"] == "tri.basics.identify_right_angle"
        assert client.get("/api/tutor/item").json()["bundle_id"] == item["bundle_id"]

        response = client.post("/api/tutor/submit", json={"target": item["answer"]["value"]})

        assert response.status_code == 200
        result = response.json()
        assert result["outcome"] == "correct"
        assert result["grading"]["strategy_family"] == "visual_target_locator"
        assert result["mastery"]["correct_count"] == 1

    def test_status(self, client):
        data = client.get("/api/tutor/status").json()
        assert data["current_concept_id"] == "tri.basics.identify_right_angle"
        assert data["levels"][0]["unlocked"]
        assert not data["levels"][1]["unlocked"]

    def test_generate_leaves_progress_alone(self, client):
        response = client.post(
            "/api/tutor/generate",
            json={"concept_id": "tri.pyth.solve_missing_side", "difficulty": 2, "intent": "assess"},
        )

        assert response.status_code == 200
        assert response.json()["concept_id"] == "tri.pyth.solve_missing_side"
        assert client.get("/api/tutor/item").status_code == 404

    def test_generate_unknown_concept(self, client):
        response = client.post("/api/tutor/generate", json={"concept_id": "tri.advanced.similarity"})
        assert response.status_code == 404

    def test_generate_rejects_bad_difficulty(self, client):
        response = client.post("/api/tutor/generate", json={"concept_id": "tri.structure.legs", "difficulty": 9})
        assert response.status_code == 422

    def test_reset(self, client):
        item = client.post("/api/tutor/next").json()["item"]
        client.post("/api/tutor/submit", json={"target": item["answer"]["value"]})

        data = client.post("/api/tutor/reset").json()

        concepts = data["levels"][0]["concepts"]
        assert concepts["tri.basics.identify_right_angle"]["attempt_count"] == 0

    def test_benchmark(self, client):
        data = client.get("/api/tutor/benchmark").json()
        assert data["total_cases"] == 7
        assert data["regression_alerts"] == []
