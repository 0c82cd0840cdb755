"""Tests for admin endpoints."""

from uuid import uuid4

from fastapi.testclient import TestClient

from phenotype_live.api.app import create_app

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def _create_session(client: TestClient) -> str:
    response = client.post(
        "/admin/sessions",
        json={"name": "Banca de treino", "photo_duration": 45},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    return response.json()["session"]["id"]


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    missing = client.get("/admin/health")
    wrong = client.get("/admin/health", headers={"X-Admin-Token": "nope"})
    ok = client.get("/admin/health", headers=ADMIN_HEADERS)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.json() == {"status": "ok"}


def test_admin_session_lifecycle(container) -> None:
    client = TestClient(create_app(container))
    session_id = _create_session(client)

    started = client.post(f"/admin/sessions/{session_id}/start", headers=ADMIN_HEADERS)
    shown = client.post(
        f"/admin/sessions/{session_id}/show-results",
        params={"expected_photo": 1},
        headers=ADMIN_HEADERS,
    )
    again = client.post(
        f"/admin/sessions/{session_id}/show-results", headers=ADMIN_HEADERS
    )
    advanced = client.post(
        f"/admin/sessions/{session_id}/next-photo", headers=ADMIN_HEADERS
    )

    assert started.json()["session"]["phase"] == "active"
    assert started.json()["session"]["remaining_seconds"] == 45
    assert shown.json()["changed"] is True
    assert again.json()["changed"] is False
    assert advanced.json()["session"]["current_photo"] == 2


def test_invalid_transition_returns_conflict(container) -> None:
    client = TestClient(create_app(container))
    session_id = _create_session(client)

    response = client.post(
        f"/admin/sessions/{session_id}/next-photo", headers=ADMIN_HEADERS
    )

    assert response.status_code == 409
    assert response.json()["error"] == "TransitionConflictError"


def test_unknown_session_returns_not_found(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(f"/admin/sessions/{uuid4()}/start", headers=ADMIN_HEADERS)

    assert response.status_code == 404


def test_restart_and_back_to_start(container, profile_repository) -> None:
    client = TestClient(create_app(container))
    session_id = _create_session(client)
    client.post(f"/admin/sessions/{session_id}/start", headers=ADMIN_HEADERS)
    client.post(
        f"/sessions/{session_id}/votes",
        json={"response": "DEFERIDO", "elapsed_ms": 1200},
        headers={"X-Participant-Id": str(profile_repository.add())},
    )

    restarted = client.post(
        f"/admin/sessions/{session_id}/restart-photo", headers=ADMIN_HEADERS
    )
    tally = client.get(f"/sessions/{session_id}/tally").json()["tally"]
    reset = client.post(
        f"/admin/sessions/{session_id}/back-to-start", headers=ADMIN_HEADERS
    )

    assert restarted.json()["session"]["generation"] == 1
    assert tally["voters"] == 0
    assert reset.json()["session"]["phase"] == "waiting"
    assert reset.json()["session"]["current_photo"] == 1


def test_admin_vote_and_reports(container, profile_repository) -> None:
    client = TestClient(create_app(container))
    session_id = _create_session(client)
    client.post(f"/admin/sessions/{session_id}/start", headers=ADMIN_HEADERS)
    admin_id = str(uuid4())
    for response in ("DEFERIDO", "DEFERIDO", "INDEFERIDO"):
        client.post(
            f"/sessions/{session_id}/votes",
            json={"response": response, "elapsed_ms": 2000},
            headers={"X-Participant-Id": str(profile_repository.add())},
        )

    admin_vote = client.post(
        f"/admin/sessions/{session_id}/admin-vote",
        json={"response": "INDEFERIDO"},
        headers={**ADMIN_HEADERS, "X-Participant-Id": admin_id},
    )
    client.post(f"/admin/sessions/{session_id}/show-results", headers=ADMIN_HEADERS)
    live = client.get(f"/admin/sessions/{session_id}/live", headers=ADMIN_HEADERS)
    consensus = client.get(
        f"/admin/sessions/{session_id}/consensus", headers=ADMIN_HEADERS
    )
    divergence = client.get(
        f"/admin/sessions/{session_id}/divergence", headers=ADMIN_HEADERS
    )

    assert admin_vote.json()["vote"]["is_admin_vote"] is True
    assert live.json()["tally"]["counts"]["DEFERIDO"] == 2
    assert live.json()["tally"]["admin_response"] == "INDEFERIDO"
    assert consensus.json()["photos"][0]["consensus"] == 66.7
    assert divergence.json()["divergences"][0]["majority_response"] == "DEFERIDO"


def test_create_session_validates_payload(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/admin/sessions", json={"name": "", "photo_duration": 0}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 422
