from __future__ import annotations

import threading
import time

import pytest

from batchlingo.config import load_config, save_config
from batchlingo.web import create_app

ROWS = [
    ["ID", "Section", "Field", "Source"],
    ["1", "intro", "title", "Hello"],
    ["2", "intro", "body", "Thanks"],
    ["3", "outro", "title", "Hello"],
]

FINISHED = ("completed", "failed", "cancelled")


@pytest.fixture
def app(provider):
    app = create_app()
    app.config.update(TESTING=True, PROVIDER_FACTORY=lambda config, name: provider)
    config = load_config()
    config["translation"]["request_delay"] = 0
    save_config(config)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _start(client, languages=("fr-FR",), **extra):
    body = {"documents": [{"name": "course.xlsx", "rows": ROWS}], "target_languages": list(languages)}
    body.update(extra)
    response = client.post("/api/jobs", json=body)
    assert response.status_code == 202, response.get_json()
    return response.get_json()["job_id"]


def _wait_for(client, job_id, states=FINISHED, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        payload = client.get(f"/api/jobs/{job_id}").get_json()
        if payload["state"] in states:
            return payload
        assert time.monotonic() < deadline, f"job stuck in {payload['state']}"
        time.sleep(0.01)


class TestJobs:
    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_tabular_job_runs_to_completion(self, client, provider):
        job_id = _start(client, ["fr-FR", "de-DE"])
        payload = _wait_for(client, job_id)

        assert payload["state"] == "completed"
        assert payload["deduplication"]["unique_strings"] == 2
        assert payload["result"]["summary"] == "2/2 languages completed"
        assert provider.strings_sent == 4

        output = client.get(f"/api/jobs/{job_id}/output/course.xlsx/fr-fr").get_json()
        assert [row[4] for row in output["content"]] == ["fr-FR", "[fr-FR] Hello", "[fr-FR] Thanks", "[fr-FR] Hello"]

    def test_subtitle_job_returns_rendered_file(self, client, srt_content):
        response = client.post("/api/jobs", json={
            "documents": [{"name": "intro.srt", "content": srt_content}],
            "target_languages": ["fr-FR"],
        })
        job_id = response.get_json()["job_id"]
        _wait_for(client, job_id)
        content = client.get(f"/api/jobs/{job_id}/output/intro.srt/fr-FR").get_json()["content"]
        assert content.startswith("1\n00:00:01,000 --> 00:00:03,500\n[fr-FR] Welcome to Blendedx\n")

    def test_malformed_document_is_rejected_up_front(self, client, provider):
        response = client.post("/api/jobs", json={
            "documents": [{"name": "course.xlsx", "rows": ROWS}, {"name": "avatar.json", "content": "{}"}],
            "target_languages": ["fr-FR"],
        })
        assert response.status_code == 422
        assert response.get_json()["code"] == "malformed_document"
        assert provider.calls == []

    @pytest.mark.parametrize("body", [
        {},
        {"documents": [], "target_languages": ["fr-FR"]},
        {"documents": [{"name": "a.txt", "content": "Hi"}], "target_languages": []},
        {"documents": [{"name": "a.txt", "content": "Hi"}], "target_languages": ["fr-FR"],
         "existing_language_modes": {"fr-FR": "sometimes"}},
    ])
    def test_invalid_requests(self, client, body):
        assert client.post("/api/jobs", json=body).status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/api/jobs/nope").status_code == 404
        assert client.post("/api/jobs/nope/pause").status_code == 404
        assert client.get("/api/jobs/nope/review/course.xlsx/fr-FR").status_code == 404

    def test_auth_failure_fails_the_job(self, app, client, make_provider, auth_failure):
        app.config["PROVIDER_FACTORY"] = lambda config, name: make_provider(fail_languages={"fr-FR": auth_failure})
        payload = _wait_for(client, _start(client))
        assert payload["state"] == "failed"
        assert payload["error_code"] == "provider_auth"


class TestJobControl:
    @pytest.fixture
    def gate(self, app, make_provider):
        """Provider whose French calls block until the gate opens."""
        release = threading.Event()
        provider = make_provider(hook=lambda strings, language: release.wait(5) if language == "fr-FR" else None)
        app.config["PROVIDER_FACTORY"] = lambda config, name: provider
        return release, provider

    def test_pause_and_resume(self, client, gate):
        release, provider = gate
        job_id = _start(client, ["fr-FR", "de-DE"])

        assert client.post(f"/api/jobs/{job_id}/pause").status_code == 200
        release.set()
        _wait_for(client, job_id, states=("paused",))
        assert provider.languages_called() == ["fr-FR"]

        assert client.post(f"/api/jobs/{job_id}/resume").status_code == 200
        payload = _wait_for(client, job_id)
        assert payload["state"] == "completed"
        assert provider.languages_called() == ["fr-FR", "de-DE"]
        assert client.post(f"/api/jobs/{job_id}/resume").status_code == 409

    def test_state_follows_control_requests_immediately(self, client, gate):
        release, provider = gate
        job_id = _start(client, ["fr-FR", "de-DE"])

        client.post(f"/api/jobs/{job_id}/pause")
        assert client.get(f"/api/jobs/{job_id}").get_json()["state"] == "paused"
        client.post(f"/api/jobs/{job_id}/resume")
        assert client.get(f"/api/jobs/{job_id}").get_json()["state"] == "running"

        release.set()
        assert _wait_for(client, job_id)["state"] == "completed"

    def test_cancel_discards_in_flight_language(self, client, gate):
        release, provider = gate
        job_id = _start(client, ["fr-FR", "de-DE"])

        assert client.post(f"/api/jobs/{job_id}/cancel").status_code == 200
        release.set()
        payload = _wait_for(client, job_id)

        assert payload["state"] == "cancelled"
        assert [lang["status"] for lang in payload["result"]["languages"]] == ["cancelled", "cancelled"]
        assert client.get(f"/api/jobs/{job_id}/output/course.xlsx/fr-FR").status_code == 404
        assert client.post(f"/api/jobs/{job_id}/cancel").status_code == 409


class TestReviewLoop:
    def test_review_export_and_correction_import(self, client):
        job_id = _start(client)
        _wait_for(client, job_id)

        response = client.get(f"/api/jobs/{job_id}/review/course.xlsx/fr-FR")
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "ClientReview_fr-FR_course.csv" in response.headers["Content-Disposition"]
        exported = response.get_data(as_text=True)
        assert exported.splitlines()[0] == "# Language: fr-FR"

        edited = exported.replace("T2,Thanks,[fr-FR] Thanks,,Pending", "T2,Thanks,[fr-FR] Thanks,Merci,Reviewed")
        edited += "T9,Ghost,,Boo,Pending\n"
        result = client.post(f"/api/jobs/{job_id}/corrections", json={
            "document": "course.xlsx",
            "tables": [{"filename": "fr-FR.csv", "content": edited}],
        }).get_json()

        assert result["applied"] == {"fr-FR": 1}
        assert result["stale"] == [{"language": "fr-FR", "id": "T9"}]
        assert [row[4] for row in result["combined"][1:]] == ["[fr-FR] Hello", "Merci", "[fr-FR] Hello"]

        again = client.get(f"/api/jobs/{job_id}/review/course.xlsx/fr-FR").get_data(as_text=True)
        assert "T2,Thanks,Merci,,Pending" in again

    def test_corrections_need_a_known_document(self, client):
        job_id = _start(client)
        _wait_for(client, job_id)
        response = client.post(f"/api/jobs/{job_id}/corrections", json={
            "document": "other.xlsx", "tables": [{"filename": "fr-FR.csv", "content": ""}]})
        assert response.status_code == 404

    def test_unreadable_table(self, client):
        job_id = _start(client)
        _wait_for(client, job_id)
        response = client.post(f"/api/jobs/{job_id}/corrections", json={
            "document": "course.xlsx", "tables": [{"filename": "notes.csv", "content": "ID,Source\n"}]})
        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_review_table"


class TestSettings:
    def test_get_settings(self, client):
        payload = client.get("/api/settings").get_json()
        assert payload["config"]["translation"]["request_delay"] == 0
        assert "deepl" in payload["meta"]["builtin_providers"]

    def test_update_merges_sections(self, client):
        response = client.put("/api/settings", json={"config": {"translation": {"batch_size": 2}}})
        assert response.status_code == 200
        config = load_config()
        assert config["translation"]["batch_size"] == 2
        assert config["translation"]["request_delay"] == 0

    @pytest.mark.parametrize("config", [
        {"provider": "babelfish"},
        {"translation": {"batch_size": 0}},
        {"translation": {"request_delay": "glacial"}},
        {"glossary": {"Hello": "Bonjour"}},
        {"log_mode": "verbose"},
    ])
    def test_update_rejects_invalid_values(self, client, config):
        assert client.put("/api/settings", json={"config": config}).status_code == 400
