"""
API tests - health, validation-only and generation endpoints.

The LLM generator is swapped for a scripted one through FastAPI dependency
overrides, so nothing here touches the network.
"""
import pytest
from fastapi.testclient import TestClient

from copyrepair.api.routes import get_generator, get_knowledge_base
from copyrepair.exceptions import GenerationFailure
from copyrepair.main import app
from conftest import BRIEF, LONG_SUBJECT, VALID_EMAIL, ScriptedGenerator


@pytest.fixture
def client():
    app.dependency_overrides[get_knowledge_base] = lambda: {"SPEC_CHAR_LIMITS": "limits text"}
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_generator(responses):
    generator = ScriptedGenerator(responses)
    app.dependency_overrides[get_generator] = lambda: generator
    return generator


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["formats"] == ["email", "multiformat"]
    assert data["knowledge_sections"] == 1


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["api_docs"] == "/docs"


# ============================================================================
# VALIDATE
# ============================================================================

def test_validate_valid_draft(client):
    response = client.post("/api/v1/validate", json={"draft": VALID_EMAIL})

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is True
    assert data["error_count"] == 0
    assert data["structure"]["subject"][0] == "Осенняя подборка уже здесь"


def test_validate_reports_violations(client):
    draft = VALID_EMAIL.replace("3. Красные к холодам", f"3. {LONG_SUBJECT}")

    response = client.post("/api/v1/validate", json={"draft": draft, "format": "email"})

    data = response.json()
    assert data["is_valid"] is False
    violation = data["violations"][0]
    assert violation["code"] == "CHAR_LIMIT_EXCEEDED"
    assert violation["severity"] == "ERROR"
    assert violation["location"] == "subject"


def test_validate_with_overrides(client):
    """Test that explicit limits override the brief's directives."""
    payload = {"draft": VALID_EMAIL, "brief": "[VAR subject=3]", "char_limits": {"subject": 20}}

    data = client.post("/api/v1/validate", json=payload).json()

    assert [v["code"] for v in data["violations"]] == ["CHAR_LIMIT_EXCEEDED"]


def test_validate_rejects_unknown_format(client):
    response = client.post("/api/v1/validate", json={"draft": VALID_EMAIL, "format": "banner"})

    assert response.status_code == 422


# ============================================================================
# GENERATE
# ============================================================================

def test_generate_success(client):
    generator = use_generator([VALID_EMAIL])

    response = client.post("/api/v1/generate", json={"brief": BRIEF, "max_attempts": 3})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["content"] == VALID_EMAIL
    assert data["stopped_reason"] == "valid"
    assert data["attempt_history"][0]["strategy"] == "generate"
    assert data["execution_time_ms"] >= 0
    assert "limits text" in generator.calls[0][0].instructions


def test_generate_without_repair_returns_first_draft(client):
    draft = VALID_EMAIL.replace("3. Красные к холодам", f"3. {LONG_SUBJECT}")
    use_generator([draft])

    data = client.post("/api/v1/generate", json={"brief": BRIEF, "enable_repair": False}).json()

    assert data["success"] is False
    assert data["stopped_reason"] == "repair_disabled"
    assert data["attempt_history"][0]["signature"] == ["CHAR_LIMIT_EXCEEDED:subject"]


def test_generate_failure_maps_to_bad_gateway(client):
    use_generator([GenerationFailure("upstream unavailable")])

    response = client.post("/api/v1/generate", json={"brief": BRIEF})

    assert response.status_code == 502
    assert "upstream unavailable" in response.json()["detail"]


def test_generate_rejects_empty_brief(client):
    use_generator([])

    response = client.post("/api/v1/generate", json={"brief": ""})

    assert response.status_code == 422


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
