from datetime import datetime, timedelta

import pytest

from models import PeerInterviewRating

RATING = {
    "communication_score": 4,
    "technical_score": 5,
    "problem_solving_score": 3,
    "overall_score": 4,
    "feedback_text": "Clear explanations",
}


def _when(**delta):
    return (datetime.utcnow() + timedelta(**delta)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _schedule(client, topic="Binary trees", **overrides):
    payload = {
        "topic": topic,
        "difficulty_level": "intermediate",
        "duration_minutes": 45,
        "scheduled_at": _when(days=1),
    }
    payload.update(overrides)
    return client.post("/api/peer-sessions", json=payload)


@pytest.fixture
def paired(user_client, make_client):
    """Alice hosts a session that Bob has joined"""
    host, host_id = user_client
    guest, guest_id = make_client("bob@example.com", "Bob Lee")
    session_id = _schedule(host).get_json()["session"]["id"]
    assert guest.post(f"/api/peer-sessions/{session_id}/join").status_code == 200
    return host, host_id, guest, guest_id, session_id


def test_schedule_session(user_client):
    client, user_id = user_client

    response = _schedule(client, meeting_notes="Bring a whiteboard")

    assert response.status_code == 201
    session = response.get_json()["session"]
    assert session["host_user_id"] == user_id
    assert session["host_name"] == "Alice Sharma"
    assert session["status"] == "scheduled"
    assert session["guest_user_id"] is None
    assert session["duration_minutes"] == 45


def test_schedule_rejects_past_time(user_client):
    client, _ = user_client

    response = _schedule(client, scheduled_at=_when(hours=-1))

    assert response.status_code == 400
    assert response.get_json()["error"] == "Scheduled time must be in the future"


def test_schedule_validates_fields(user_client):
    client, _ = user_client

    response = _schedule(client, topic="", duration_minutes=20)

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert errors["topic"] == "Topic is required"
    assert "duration_minutes" in errors


def test_listing_splits_available_and_mine(user_client, make_client):
    alice, _ = user_client
    bob, _ = make_client("bob@example.com", "Bob Lee")
    alice_session = _schedule(alice, "Graphs").get_json()["session"]["id"]
    bob_session = _schedule(bob, "Heaps").get_json()["session"]["id"]

    body = alice.get("/api/peer-sessions").get_json()

    assert [s["id"] for s in body["available"]] == [bob_session]
    assert [(s["id"], s["role"]) for s in body["mine"]] == [(alice_session, "host")]


def test_join_rules(user_client, make_client):
    host, _ = user_client
    guest, guest_id = make_client("bob@example.com")
    third, _ = make_client("carol@example.com")
    session_id = _schedule(host).get_json()["session"]["id"]

    assert host.post(f"/api/peer-sessions/{session_id}/join").status_code == 400

    joined = guest.post(f"/api/peer-sessions/{session_id}/join")
    assert joined.status_code == 200
    assert joined.get_json()["session"]["guest_user_id"] == guest_id

    assert third.post(f"/api/peer-sessions/{session_id}/join").status_code == 409
    assert third.post("/api/peer-sessions/999/join").status_code == 404


def test_cannot_join_cancelled_session(user_client, make_client):
    host, _ = user_client
    guest, _ = make_client("bob@example.com")
    session_id = _schedule(host).get_json()["session"]["id"]
    host.post(f"/api/peer-sessions/{session_id}/cancel")

    assert guest.post(f"/api/peer-sessions/{session_id}/join").status_code == 409


def test_start_returns_role_and_ice_servers(paired):
    host, _, guest, _, session_id = paired

    host_start = host.post(f"/api/peer-sessions/{session_id}/start").get_json()
    guest_start = guest.post(f"/api/peer-sessions/{session_id}/start").get_json()

    assert host_start["role"] == "host"
    assert guest_start["role"] == "guest"
    assert guest_start["session"]["status"] == "in_progress"
    assert {"urls": "stun:stun.l.google.com:19302"} in host_start["ice_servers"]


def test_non_participants_are_refused(paired, make_client):
    _, _, _, _, session_id = paired
    outsider, _ = make_client("carol@example.com")

    assert outsider.post(f"/api/peer-sessions/{session_id}/start").status_code == 403
    assert outsider.post(f"/api/peer-sessions/{session_id}/end").status_code == 403
    assert outsider.get(f"/api/peer-sessions/{session_id}/rating").status_code == 403
    assert outsider.get(f"/peer-interviews/session/{session_id}").status_code == 403
    assert outsider.post("/api/peer-sessions/999/start").status_code == 404


def test_only_host_can_cancel(paired):
    host, _, guest, _, session_id = paired

    assert guest.post(f"/api/peer-sessions/{session_id}/cancel").status_code == 403

    response = host.post(f"/api/peer-sessions/{session_id}/cancel")
    assert response.status_code == 200
    assert response.get_json()["session"]["status"] == "cancelled"

    assert host.post(f"/api/peer-sessions/{session_id}/cancel").status_code == 409
    assert host.post(f"/api/peer-sessions/{session_id}/start").status_code == 409


def test_end_returns_rating_url(paired):
    host, _, _, _, session_id = paired
    host.post(f"/api/peer-sessions/{session_id}/start")

    body = host.post(f"/api/peer-sessions/{session_id}/end").get_json()

    assert body["session"]["status"] == "completed"
    assert body["rate_url"] == f"/peer-interviews/session/{session_id}/rate"


def test_rating_flow(flask_app, paired):
    host, host_id, guest, guest_id, session_id = paired
    host.post(f"/api/peer-sessions/{session_id}/end")

    before = guest.get(f"/api/peer-sessions/{session_id}/rating").get_json()
    assert before["partner_id"] == host_id
    assert before["partner_name"] == "Alice Sharma"
    assert before["already_rated"] is False

    response = guest.post(f"/api/peer-sessions/{session_id}/rating", json=RATING)
    assert response.status_code == 201
    rating = response.get_json()["rating"]
    assert (rating["rater_user_id"], rating["rated_user_id"]) == (guest_id, host_id)

    assert guest.get(f"/api/peer-sessions/{session_id}/rating").get_json()["already_rated"] is True
    duplicate = guest.post(f"/api/peer-sessions/{session_id}/rating", json=RATING)
    assert duplicate.status_code == 409

    assert host.post(f"/api/peer-sessions/{session_id}/rating", json=RATING).status_code == 201
    with flask_app.app_context():
        assert PeerInterviewRating.query.filter_by(session_id=session_id).count() == 2


@pytest.mark.parametrize("field, value", [
    ("communication_score", 0),
    ("technical_score", 6),
    ("overall_score", None),
])
def test_rating_scores_must_be_one_to_five(paired, field, value):
    _, _, guest, _, session_id = paired
    payload = dict(RATING, **{field: value})

    response = guest.post(f"/api/peer-sessions/{session_id}/rating", json=payload)

    assert response.status_code == 400
    assert field in response.get_json()["errors"]


def test_rating_requires_a_partner(user_client):
    host, _ = user_client
    session_id = _schedule(host).get_json()["session"]["id"]

    response = host.post(f"/api/peer-sessions/{session_id}/rating", json=RATING)

    assert response.status_code == 400
    assert response.get_json()["error"] == "This session has no partner to rate"


def test_room_and_rating_pages_render(paired):
    host, _, guest, _, session_id = paired

    room = host.get(f"/peer-interviews/session/{session_id}")
    assert room.status_code == 200
    assert b"Binary trees" in room.data
    assert b"you are the host" in room.data

    rate = guest.get(f"/peer-interviews/session/{session_id}/rate")
    assert rate.status_code == 200
    assert b"Rate Alice Sharma" in rate.data


def test_end_closes_the_signaling_room(paired, signaling_hub):
    host, host_id, _, guest_id, session_id = paired
    subscription = signaling_hub.subscribe(session_id, host_id, host_id, guest_id)

    host.post(f"/api/peer-sessions/{session_id}/end")

    assert subscription.queue.get_nowait() == {"type": "closed"}
    assert subscription.room.closed is True
