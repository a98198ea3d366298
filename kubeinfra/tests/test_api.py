from fastapi.testclient import TestClient

from kubeinfra.api.main import app
from kubeinfra.api.routes.copy import get_session_factory
from kubeinfra.config import Config
from kubeinfra.modules.infra import default_infra_document

client = TestClient(app)
HEADERS = {"X-API-Key": Config.API_KEY}


def test_requires_api_key():
    response = client.get("/infra/demo")
    assert response.status_code == 403
    response = client.get("/infra/demo", headers={"X-API-Key": "wrong"})
    assert response.status_code == 403


def test_openapi_is_public():
    response = client.get("/openapi.json")
    assert response.status_code == 200


def test_apply_get_delete():
    doc = default_infra_document("api-cluster")

    response = client.post("/infra/apply", json={"infra": doc}, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["errors"] == []
    assert body["status"]["cluster"]["floating_ip_id"]

    response = client.get("/infra/api-cluster", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["cluster"]["network_id"] == body["status"]["cluster"]["network_id"]

    response = client.post("/infra/delete", json={"infra": doc}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["errors"] == []

    response = client.get("/infra/api-cluster", headers=HEADERS)
    assert response.status_code == 404


def test_apply_invalid_document():
    response = client.post("/infra/apply", json={"infra": {"name": "x"}}, headers=HEADERS)
    assert response.status_code == 422


def test_apply_unknown_backend():
    doc = default_infra_document("api-cluster")
    response = client.post("/infra/apply", json={"infra": doc, "backend": "nope"}, headers=HEADERS)
    assert response.status_code == 400


def test_copy(sessions, artifact):
    app.dependency_overrides[get_session_factory] = lambda: sessions
    try:
        payload = {
            "location": str(artifact),
            "hosts": ["10.0.0.1", "10.0.0.2"],
            "dst": "/root",
            "ssh": {"pk_file": ""},
        }
        response = client.post("/copy", json=payload, headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["location"] == str(artifact)
        assert len(body["results"]) == 2

        sessions.unreachable.add("10.0.0.2")
        payload["strict"] = True
        payload["dst"] = "/opt"
        response = client.post("/copy", json=payload, headers=HEADERS)
        assert response.status_code == 502
        assert "10.0.0.2" in response.json()["detail"]["message"]
    finally:
        app.dependency_overrides.clear()


def test_copy_missing_artifact(tmp_path):
    payload = {"location": str(tmp_path / "missing"), "hosts": ["10.0.0.1"]}
    response = client.post("/copy", json=payload, headers=HEADERS)
    assert response.status_code == 400


def test_apply_unknown_status_field():
    doc = default_infra_document("api-cluster")
    doc["status"] = {"cluster": {"vpc_id": "x"}}
    response = client.post("/infra/apply", json={"infra": doc}, headers=HEADERS)
    assert response.status_code == 422


def test_copy_negative_max_workers(artifact):
    payload = {"location": str(artifact), "hosts": ["10.0.0.1"], "max_workers": -2}
    response = client.post("/copy", json=payload, headers=HEADERS)
    assert response.status_code == 422
