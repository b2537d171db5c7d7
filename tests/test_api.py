import pytest
from fastapi.testclient import TestClient

from conftest import at
from interview_engine.base.config import settings
from interview_engine.main import app
from interview_engine.routers.interviews import get_services

BASE = f"/api/{settings.API_VERSION}/interviews"


def headers(user_id="recruiter-1"):
    return {"X-API-Key": settings.API_KEY, "X-User-Id": user_id}


def schedule_body(application_id="app-1", start=None, participants=("p1", "p2")):
    return {
        "application_id": application_id,
        "title": "Technical interview",
        "interview_type": "Technical",
        "scheduled_start": (start or at(2, 9)).isoformat(),
        "duration_minutes": 60,
        "mode": "Online",
        "participants": [{"user_id": pid, "role": "Interviewer"} for pid in participants],
    }


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def created(client):
    response = client.post(BASE, json=schedule_body(), headers=headers())
    assert response.status_code == 201
    return response.json()


@pytest.mark.api
class TestSystemEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_version(self, client):
        body = client.get("/version").json()
        assert body["api_version"] == settings.API_VERSION

    def test_api_key_required(self, client):
        response = client.post(BASE, json=schedule_body(), headers={"X-User-Id": "recruiter-1"})
        assert response.status_code == 403
        assert response.json()["error"] == "Invalid or missing API key"

    def test_acting_user_required(self, client):
        response = client.post(BASE, json=schedule_body(), headers={"X-API-Key": settings.API_KEY})
        assert response.status_code == 422


@pytest.mark.api
class TestInterviewEndpoints:

    def test_schedule(self, created):
        assert created["status"] == "Scheduled"
        assert created["round_number"] == 1
        assert created["participants"][0]["is_lead"] is True
        assert created["meeting_details"].startswith("Meeting Link: https://meet.example.com/meeting-1")

    def test_conflict_maps_to_409(self, client, created):
        response = client.post(
            BASE, json=schedule_body(application_id="app-2", start=at(2, 9, 30), participants=("p1",)), headers=headers()
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "conflict"

    def test_validation_maps_to_422(self, client):
        response = client.post(BASE, json=schedule_body(start=at(5, 10)), headers=headers())
        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_unauthorized_maps_to_403(self, client, created):
        response = client.post(f"{BASE}/{created['id']}/cancel", json={"reason": "n/a"}, headers=headers("outsider"))
        assert response.status_code == 403
        assert response.json()["kind"] == "unauthorized"

    def test_unknown_interview_maps_to_404(self, client):
        response = client.post(f"{BASE}/missing/cancel", json={}, headers=headers())
        assert response.status_code == 404

    def test_slots(self, client):
        response = client.post(
            f"{BASE}/slots",
            json={"participant_ids": ["p1"], "start_date": "2030-01-08", "end_date": "2030-01-08", "duration_minutes": 60},
            headers=headers(),
        )
        assert response.status_code == 200
        assert len(response.json()) == 17

    def test_reschedule_and_participants(self, client, created):
        response = client.post(
            f"{BASE}/{created['id']}/reschedule",
            json={"new_start": at(3, 11).isoformat(), "reason": "Clash"},
            headers=headers(),
        )
        assert response.status_code == 200

        participants = client.get(f"{BASE}/{created['id']}/participants", headers=headers("p2")).json()
        assert [p["user_id"] for p in participants] == ["p1", "p2"]

    def test_complete_evaluate_and_report(self, client, clock, created):
        clock.set(at(2, 9, 30))
        assert client.post(f"{BASE}/{created['id']}/complete", json={}, headers=headers("p1")).status_code == 200

        for evaluator, rating in (("p1", 8), ("p2", 9)):
            response = client.post(
                f"{BASE}/evaluations",
                json={"interview_id": created["id"], "recommendation": "Pass", "overall_rating": rating},
                headers=headers(evaluator),
            )
            assert response.status_code == 201

        score = client.get(f"{BASE}/{created['id']}/score", headers=headers()).json()
        assert score["average_score"] == 8.5
        assert score["overall_recommendation"] == "Pass"
        assert score["evaluation_complete"] is True

        outcome = client.get(f"{BASE}/applications/app-1/outcome", headers=headers()).json()
        assert outcome == {"application_id": "app-1", "outcome": "Pass", "process_complete": True, "can_schedule": True}

        analytics = client.get(
            f"{BASE}/analytics",
            params={"from_date": at(0, 0).isoformat(), "to_date": at(7, 0).isoformat()},
            headers=headers(),
        ).json()
        assert analytics["completed_interviews"] == 1

    def test_duplicate_evaluation(self, client, clock, created):
        clock.set(at(2, 9, 30))
        client.post(f"{BASE}/{created['id']}/complete", json={}, headers=headers("p1"))
        body = {"interview_id": created["id"], "recommendation": "Maybe"}

        assert client.post(f"{BASE}/evaluations", json=body, headers=headers("p1")).status_code == 201
        assert client.post(f"{BASE}/evaluations", json=body, headers=headers("p1")).status_code == 409

        pending = client.get(f"{BASE}/evaluations/pending", headers=headers("p2")).json()
        assert [i["id"] for i in pending] == [created["id"]]

    def test_latest_interview(self, client, created):
        assert client.get(f"{BASE}/applications/app-2/latest", headers=headers()).json() is None
        assert client.get(f"{BASE}/applications/app-1/latest", headers=headers()).json()["id"] == created["id"]
