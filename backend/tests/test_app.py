"""
Tests for the FastAPI endpoints
"""
import pytest
from unittest.mock import Mock, patch
import sys
import os

from fastapi.testclient import TestClient

# Add backend directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import app as app_module
from models import RAGResponse, Source
from exceptions import ProviderError
from session_manager import SessionManager


class TestAPIEndpoints:
    """Test API routes with a mocked orchestrator"""

    def setup_method(self):
        self.orchestrator = Mock()
        self.orchestrator.query.return_value = RAGResponse(
            answer="Risk assessments are conducted regularly.",
            sources=[Source("SATIM Risk Management Policy", "Regular risk assessments...",
                            {"source": "SATIM Risk Management Policy", "page": 3}, 0.64)],
        )
        self.orchestrator.get_status.return_value = {"state": "ready", "document_count": 3, "error": None}

        self.current_patch = patch.object(app_module.RAGOrchestrator, 'current', return_value=self.orchestrator)
        self.sessions_patch = patch.object(app_module, 'session_manager', SessionManager())
        self.current_patch.start()
        self.sessions_patch.start()
        # Lifespan is not triggered without the context manager form
        self.client = TestClient(app_module.app)

    def teardown_method(self):
        self.current_patch.stop()
        self.sessions_patch.stop()

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_query_without_session(self):
        response = self.client.post("/api/query", json={"query": "How often are risks assessed?"})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Risk assessments are conducted regularly."
        assert body["session_id"] is None
        assert body["error"] is False
        assert body["sources"] == [{
            "name": "SATIM Risk Management Policy",
            "content": "Regular risk assessments...",
            "metadata": {"source": "SATIM Risk Management Policy", "page": 3},
            "score": 0.64,
        }]
        self.orchestrator.query.assert_called_once_with("How often are risks assessed?")

    def test_sessionless_queries_keep_no_sessions(self):
        for i in range(50):
            response = self.client.post("/api/query", json={"query": f"Question {i}"})
            assert response.status_code == 200

        assert app_module.session_manager.sessions == {}
        assert self.orchestrator.query.call_count == 50

    def test_open_session(self):
        response = self.client.post("/api/sessions")

        assert response.status_code == 200
        session_id = response.json()["session_id"]
        assert session_id == "session_1"
        assert app_module.session_manager.get_session(session_id).orchestrator is self.orchestrator

    def test_open_session_without_service(self):
        with patch.object(app_module.RAGOrchestrator, 'current', return_value=None):
            response = self.client.post("/api/sessions")

        assert response.status_code == 503
        assert app_module.session_manager.sessions == {}

    def test_query_reuses_session(self):
        session_id = self.client.post("/api/sessions").json()["session_id"]

        first = self.client.post("/api/query", json={"query": "First question", "session_id": session_id})
        second = self.client.post("/api/query", json={"query": "Second question", "session_id": session_id})

        assert first.json()["session_id"] == session_id
        assert second.status_code == 200
        session = app_module.session_manager.get_session(session_id)
        assert len(session.messages) == 4

    def test_query_unknown_session(self):
        response = self.client.post("/api/query", json={"query": "Question", "session_id": "session_99"})

        assert response.status_code == 404

    def test_query_empty(self):
        response = self.client.post("/api/query", json={"query": "   "})

        assert response.status_code == 422

    def test_query_provider_failure_returns_error_message(self):
        self.orchestrator.query.side_effect = ProviderError("rate limited")

        response = self.client.post("/api/query", json={"query": "Question"})

        assert response.status_code == 200
        body = response.json()
        assert body["error"] is True
        assert body["sources"] == []

    def test_query_without_service(self):
        with patch.object(app_module.RAGOrchestrator, 'current', return_value=None):
            response = self.client.post("/api/query", json={"query": "Question"})

        assert response.status_code == 503

    def test_status(self):
        response = self.client.get("/api/status")

        assert response.status_code == 200
        assert response.json() == {"state": "ready", "document_count": 3, "error": None}

    def test_status_without_service(self):
        with patch.object(app_module.RAGOrchestrator, 'current', return_value=None):
            response = self.client.get("/api/status")

        assert response.json()["state"] == "unavailable"

    def test_initialize_retries(self):
        with patch.object(app_module.RAGOrchestrator, 'get_instance') as mock_get_instance:
            response = self.client.post("/api/initialize")

        mock_get_instance.assert_called_once_with(retry=True)
        assert response.status_code == 200
        assert response.json()["state"] == "ready"

    def test_initialize_failure_reported(self):
        self.orchestrator.get_status.return_value = {"state": "failed", "document_count": 0, "error": "down"}
        with patch.object(app_module.RAGOrchestrator, 'get_instance', side_effect=ProviderError("down")):
            response = self.client.post("/api/initialize")

        assert response.status_code == 200
        assert response.json() == {"state": "failed", "document_count": 0, "error": "down"}

    def test_close_session(self):
        session_id = self.client.post("/api/sessions").json()["session_id"]
        self.client.post("/api/query", json={"query": "Question", "session_id": session_id})

        response = self.client.delete(f"/api/sessions/{session_id}")

        assert response.status_code == 200
        assert app_module.session_manager.get_session(session_id) is None
        assert self.client.delete(f"/api/sessions/{session_id}").status_code == 404


class TestStartup:
    """Test service startup behavior"""

    def test_startup_failure_does_not_raise(self):
        with patch.object(app_module.RAGOrchestrator, 'get_instance', side_effect=ProviderError("down")), \
             patch.object(app_module.RAGOrchestrator, 'current', return_value=None):
            assert app_module._start_service() is None

    def test_startup_success(self):
        orchestrator = Mock()
        with patch.object(app_module.RAGOrchestrator, 'get_instance', return_value=orchestrator):
            assert app_module._start_service() is orchestrator


if __name__ == "__main__":
    pytest.main([__file__])
