"""API tests for upload, listing, status polling and health."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

import main
from documents import DocumentFetcher
from records import InMemoryRecordStore
from storage import InMemoryObjectStore

FORM = {
    "full_name": "Jane Doe",
    "email": "jane.doe@example.com",
    "phone": "+44 20 7946 0958",
    "skills": "Python, SQL",
}


@pytest.fixture
def api(monkeypatch: pytest.MonkeyPatch):
    """Client with fresh stores and model configuration disabled."""
    monkeypatch.setattr(main.settings, "OPENROUTER_API_KEY", "")
    monkeypatch.setattr(main, "_records", InMemoryRecordStore())
    monkeypatch.setattr(main, "_object_store", InMemoryObjectStore())
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def api_with_model(monkeypatch: pytest.MonkeyPatch):
    """Client whose background task talks to a fake model and resolves documents from storage."""
    monkeypatch.setattr(main.settings, "OPENROUTER_API_KEY", "test-key")
    store = InMemoryObjectStore()
    monkeypatch.setattr(main, "_records", InMemoryRecordStore())
    monkeypatch.setattr(main, "_object_store", store)

    with TestClient(main.app) as client:
        # Public URL is unreachable; documents come from the object store fallback
        offline = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        monkeypatch.setattr(main, "_fetcher", DocumentFetcher(store, http_client=offline))
        fake_model = MagicMock()
        monkeypatch.setattr(main, "_model_client", fake_model)
        yield client, fake_model


def upload(client: TestClient, content: bytes, filename: str = "jane.pdf", **overrides):
    data = {**FORM, **overrides}
    return client.post("/api/v1/cvs", data=data, files={"file": (filename, content, "application/pdf")})


class TestUpload:
    def test_upload_creates_pending_record(self, api: TestClient, pdf_bytes: bytes):
        resp = upload(api, pdf_bytes)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True

        status = api.get(f"/api/v1/cvs/{body['id']}/validation").json()
        assert status["validationStatus"] == "pending"
        assert status["validationErrors"] == []
        assert status["validationResults"] is None

    def test_record_has_stored_file_url(self, api: TestClient, pdf_bytes: bytes):
        cv_id = upload(api, pdf_bytes).json()["id"]
        record = api.get(f"/api/v1/cvs/{cv_id}").json()
        assert record["fullName"] == "Jane Doe"
        assert record["experience"] is None
        assert record["fileName"].endswith("-jane.pdf")
        assert record["fileUrl"].endswith(f"/cvs/{record['fileName']}")
        assert "version" not in record

    def test_invalid_file_rejected(self, api: TestClient, invalid_bytes: bytes):
        resp = upload(api, invalid_bytes)
        assert resp.status_code == 400
        assert "Invalid file format" in resp.json()["detail"]

    def test_extension_mismatch_rejected(self, api: TestClient, pdf_bytes: bytes):
        resp = upload(api, pdf_bytes, filename="jane.txt")
        assert resp.status_code == 400
        assert "Invalid file extension" in resp.json()["detail"]

    def test_invalid_email_rejected(self, api: TestClient, pdf_bytes: bytes):
        resp = upload(api, pdf_bytes, email="not-an-email")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Valid email is required"

    def test_blank_name_rejected(self, api: TestClient, pdf_bytes: bytes):
        resp = upload(api, pdf_bytes, full_name="   ")
        assert resp.status_code == 400


class TestBackgroundValidation:
    def test_validation_runs_after_upload(self, api_with_model, pdf_bytes: bytes, all_match_reply: str):
        client, fake_model = api_with_model
        fake_model.complete.return_value = all_match_reply

        cv_id = upload(client, pdf_bytes).json()["id"]

        status = client.get(f"/api/v1/cvs/{cv_id}/validation").json()
        assert status["validationStatus"] == "validated"
        assert status["validationErrors"] == []
        assert status["validationResults"]["summary"]["matchCount"] == 3
        assert status["validationResults"]["fields"][0]["extractedValue"] == "Jane Doe"
        assert status["validatedAt"] is not None

        prompt, document = fake_model.complete.call_args.args
        assert '"Jane Doe"' in prompt
        assert document.content == pdf_bytes

    def test_model_failure_reported_on_record(self, api_with_model, pdf_bytes: bytes):
        client, fake_model = api_with_model
        fake_model.complete.return_value = "I could not open the file."

        cv_id = upload(client, pdf_bytes).json()["id"]

        status = client.get(f"/api/v1/cvs/{cv_id}/validation").json()
        assert status["validationStatus"] == "failed"
        assert len(status["validationErrors"]) == 1
        assert "not valid JSON" in status["validationErrors"][0]


class TestRead:
    def test_list_newest_first(self, api: TestClient, pdf_bytes: bytes):
        first = upload(api, pdf_bytes).json()["id"]
        second = upload(api, pdf_bytes, email="other@example.com").json()["id"]
        ids = [cv["id"] for cv in api.get("/api/v1/cvs").json()]
        assert ids == [second, first]

    def test_unknown_cv_404(self, api: TestClient):
        assert api.get("/api/v1/cvs/missing").status_code == 404
        resp = api.get("/api/v1/cvs/missing/validation")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "CV not found: missing"


class TestHealth:
    def test_health_without_model(self, api: TestClient):
        body = api.get("/health").json()
        assert body["status"] == "healthy"
        assert body["model_configured"] is False

    def test_health_with_model(self, api_with_model):
        client, _ = api_with_model
        assert client.get("/health").json()["model_configured"] is True
