from datetime import datetime

import pytest

from app import db
from models import (
    InterviewSession, VideoInterviewSession, PeerInterviewSession, PeerInterviewRating,
    UserCareerRecommendation
)

from analytics_service import round_half_up
from conftest import create_user


def _video(user_id, overall, delivery=0, body=0, confidence=0, status="completed", created_at=None):
    return VideoInterviewSession(
        user_id=user_id, question="Tell me about yourself.", status=status,
        overall_score=overall, delivery_score=delivery, body_language_score=body,
        confidence_score=confidence, created_at=created_at or datetime(2026, 1, 1)
    )


def _peer_session(host_id, guest_id, status="completed"):
    session = PeerInterviewSession(host_user_id=host_id, guest_user_id=guest_id, topic="Arrays",
                                   difficulty_level="beginner", duration_minutes=30,
                                   scheduled_at=datetime(2026, 2, 1), status=status)
    db.session.add(session)
    db.session.flush()
    return session


def _rating(session, rater_id, rated_id, overall, communication=4, technical=4):
    db.session.add(PeerInterviewRating(
        session_id=session.id, rater_user_id=rater_id, rated_user_id=rated_id,
        communication_score=communication, technical_score=technical,
        problem_solving_score=4, overall_score=overall
    ))


@pytest.fixture
def video_history(flask_app, user_client):
    """Alice has two analyzed answers; Bob and Carol have one each"""
    _, alice = user_client
    bob = create_user(flask_app, "bob@example.com", "Bob Lee")
    carol = create_user(flask_app, "carol@example.com", "Carol Diaz")
    with flask_app.app_context():
        db.session.add_all([
            _video(alice, 60, 50, 60, 70, created_at=datetime(2026, 1, 10, 9, 0)),
            _video(alice, 80, 70, 80, 90, created_at=datetime(2026, 1, 20, 9, 0)),
            _video(alice, None, status="failed", created_at=datetime(2026, 1, 25)),
            _video(bob, 70),
            _video(carol, 90),
        ])
        db.session.commit()
    return alice, bob, carol


def test_profile_stats(flask_app, user_client, video_history):
    client, alice = user_client
    with flask_app.app_context():
        db.session.add_all([
            InterviewSession(user_id=alice, interview_type="technical", status="completed"),
            InterviewSession(user_id=alice, interview_type="behavioral", status="in_progress"),
        ])
        db.session.commit()

    stats = client.get("/api/profile/stats").get_json()

    assert stats == {
        "total_interviews": 4,
        "completed_sessions": 1,
        "average_score": 70,
        "peer_sessions": 0,
    }


def test_progress_analytics(user_client, video_history):
    client, _ = user_client

    progress = client.get("/api/analytics/progress").get_json()

    assert progress["session_count"] == 2
    assert progress["improvement"] == 20
    assert progress["chart_data"][0] == {
        "session": "Session 1",
        "date": "Jan 10",
        "overall": 60,
        "delivery": 50,
        "body_language": 60,
        "confidence": 70,
    }
    assert progress["average_scores"] == {"overall": 70, "delivery": 60, "body_language": 70, "confidence": 80}


def test_progress_analytics_without_history(user_client):
    client, _ = user_client

    progress = client.get("/api/analytics/progress").get_json()

    assert progress == {
        "chart_data": [],
        "average_scores": {"overall": 0, "delivery": 0, "body_language": 0, "confidence": 0},
        "improvement": 0,
        "session_count": 0,
    }


def test_performance_analytics_rank_and_percentile(user_client, video_history):
    client, _ = user_client

    performance = client.get("/api/analytics/performance").get_json()

    stats = performance["user_stats"]
    assert stats["total_sessions"] == 2
    assert stats["rank"] == 2
    assert stats["percentile"] == 33.3
    assert stats["improvement"] == 20
    assert stats["average_score"] == 35.0

    assert performance["performance_trend"][1]["session"] == "S2"
    assert performance["performance_trend"][1]["date"] == "01/20/2026"
    radar = {item["skill"]: item for item in performance["skill_radar"]}
    assert radar["Delivery"] == {"skill": "Delivery", "score": 60.0, "full_mark": 100}
    assert radar["Technical"]["full_mark"] == 10
    comparison = {row["metric"]: row for row in performance["comparison"]}
    assert comparison["Overall Score"] == {"metric": "Overall Score", "you": 35.0, "average": 65, "top10": 85}


def test_performance_analytics_blends_peer_ratings(flask_app, user_client):
    client, alice = user_client
    bob = create_user(flask_app, "bob@example.com", "Bob Lee")
    with flask_app.app_context():
        db.session.add(_video(alice, 80))
        session = _peer_session(bob, alice)
        _rating(session, bob, alice, overall=4, communication=3, technical=5)
        db.session.commit()

    stats = client.get("/api/analytics/performance").get_json()

    assert stats["user_stats"]["total_sessions"] == 2
    assert stats["user_stats"]["average_score"] == 42.0
    radar = {item["skill"]: item["score"] for item in stats["skill_radar"]}
    assert radar["Communication"] == 3.0
    assert radar["Technical"] == 5.0


def test_performance_analytics_for_unranked_user(user_client):
    client, _ = user_client

    stats = client.get("/api/analytics/performance").get_json()["user_stats"]

    assert stats == {"total_sessions": 0, "average_score": 0, "improvement": 0, "rank": 0, "percentile": 0}


def test_leaderboard(flask_app, user_client):
    client, alice = user_client
    bob = create_user(flask_app, "bob@example.com", "Bob Lee")
    carol = create_user(flask_app, "carol@example.com", "Carol Diaz")
    dave = create_user(flask_app, "dave@example.com", "Dave Kim")
    with flask_app.app_context():
        s1 = _peer_session(alice, bob)
        s2 = _peer_session(alice, carol)
        s3 = _peer_session(dave, alice)
        s4 = _peer_session(bob, carol)
        _peer_session(bob, carol, status="cancelled")
        _rating(s1, bob, alice, 5)
        _rating(s2, carol, alice, 4)
        _rating(s3, dave, alice, 3)
        _rating(s1, alice, bob, 5)
        _rating(s4, carol, bob, 4)
        db.session.commit()

    board = client.get("/api/leaderboard").get_json()

    assert board["top_rated"] == [{
        "user_id": alice,
        "full_name": "Alice Sharma",
        "average_rating": 4.0,
        "total_ratings": 3,
        "total_sessions": 3,
    }]
    assert [(e["user_id"], e["total_sessions"]) for e in board["most_active"]] == [
        (alice, 3), (bob, 2), (carol, 2), (dave, 1)
    ]


def test_leaderboard_ties_are_ordered_by_user_id(flask_app, user_client):
    client, alice = user_client
    carol = create_user(flask_app, "carol@example.com", "Carol Diaz")
    dave = create_user(flask_app, "dave@example.com", "Dave Kim")
    with flask_app.app_context():
        # Dave is rated and completes sessions before Carol
        for partner in (dave, dave, dave, carol, carol, carol):
            _rating(_peer_session(alice, partner), alice, partner, 4)
        db.session.commit()

    board = client.get("/api/leaderboard").get_json()

    assert carol < dave
    assert [e["user_id"] for e in board["top_rated"]] == [carol, dave]
    assert [e["user_id"] for e in board["most_active"]] == [alice, carol, dave]


def test_dashboard_payload(flask_app, user_client):
    client, alice = user_client
    with flask_app.app_context():
        db.session.add(InterviewSession(user_id=alice, interview_type="resume"))
        db.session.add(UserCareerRecommendation(user_id=alice, skill_gaps=[{"skill": "Kafka"}]))
        db.session.commit()

    dashboard = client.get("/api/dashboard").get_json()

    assert dashboard["profile"]["full_name"] == "Alice Sharma"
    assert dashboard["stats"]["total_interviews"] == 1
    assert [s["interview_type"] for s in dashboard["recent_activity"]] == ["resume"]
    assert dashboard["skill_gaps"] == [{"skill": "Kafka"}]
    assert client.get("/api/profile/skill-gaps").get_json() == {"skill_gaps": [{"skill": "Kafka"}]}
    assert len(client.get("/api/profile/activity").get_json()["sessions"]) == 1


def test_dashboard_page_lists_skill_gaps(flask_app, user_client):
    client, alice = user_client
    with flask_app.app_context():
        db.session.add(UserCareerRecommendation(user_id=alice, skill_gaps=[
            {"skill": "Kafka", "importance": "Event-driven backends"},
        ]))
        db.session.commit()

    page = client.get("/dashboard")

    assert b"Kafka" in page.data
    assert b"Event-driven backends" in page.data


@pytest.mark.parametrize("value, expected", [(12.5, 13), (72.5, 73), (75.5, 76), (72.4, 72), (0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
