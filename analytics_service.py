"""
Practice Analytics Service
Dashboard stats, video interview progress, performance comparison and the peer leaderboard
"""

import math
import logging
from collections import OrderedDict
from typing import Dict, List
from sqlalchemy import or_
from app import db
from models import (
    Profile, InterviewSession, VideoInterviewSession, UserCareerRecommendation,
    PeerInterviewSession, PeerInterviewRating
)

# Fixed benchmarks shown next to the user's own numbers
BENCHMARKS = {
    'Overall Score': {'average': 65, 'top10': 85},
    'Sessions': {'average': 8, 'top10': 20},
    'Improvement': {'average': 5, 'top10': 15},
}

LEADERBOARD_MIN_RATINGS = 3
LEADERBOARD_SIZE = 10
RECENT_ACTIVITY_LIMIT = 5


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


def round_half_up(value: float) -> int:
    """Nearest whole number with halves rounded up (12.5 -> 13)"""
    return math.floor(value + 0.5)


class PracticeAnalyticsService:
    """Analytics over a user's interview practice and peer sessions"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def get_profile_stats(self, user_id: int) -> Dict:
        """
        Headline numbers for the profile page

        Returns:
            Dict with total_interviews, completed_sessions, average_score, peer_sessions
        """
        sessions = InterviewSession.query.filter_by(user_id=user_id).all()
        scored_videos = VideoInterviewSession.query.filter(
            VideoInterviewSession.user_id == user_id,
            VideoInterviewSession.overall_score.isnot(None)
        ).all()
        peer_sessions = PeerInterviewSession.query.filter(
            or_(PeerInterviewSession.host_user_id == user_id,
                PeerInterviewSession.guest_user_id == user_id)
        ).count()

        return {
            'total_interviews': len(sessions) + len(scored_videos),
            'completed_sessions': len([s for s in sessions if s.status == 'completed']),
            'average_score': round_half_up(_mean([v.overall_score for v in scored_videos])),
            'peer_sessions': peer_sessions,
        }

    def get_recent_activity(self, user_id: int, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict]:
        sessions = (InterviewSession.query
                    .filter_by(user_id=user_id)
                    .order_by(InterviewSession.created_at.desc(), InterviewSession.id.desc())
                    .limit(limit)
                    .all())
        return [session.to_dict() for session in sessions]

    def get_skill_gaps(self, user_id: int) -> List[Dict]:
        recommendation = UserCareerRecommendation.query.filter_by(user_id=user_id).first()
        return (recommendation.skill_gaps or []) if recommendation else []

    def get_dashboard(self, user_id: int) -> Dict:
        profile = db.session.get(Profile, user_id)
        return {
            'profile': profile.to_dict() if profile else None,
            'stats': self.get_profile_stats(user_id),
            'recent_activity': self.get_recent_activity(user_id),
            'skill_gaps': self.get_skill_gaps(user_id),
        }

    def _completed_videos(self, user_id: int) -> List[VideoInterviewSession]:
        return (VideoInterviewSession.query
                .filter_by(user_id=user_id, status='completed')
                .order_by(VideoInterviewSession.created_at.asc(), VideoInterviewSession.id.asc())
                .all())

    def get_progress_analytics(self, user_id: int) -> Dict:
        """
        Score progression over completed video interviews, oldest first

        Returns:
            Dict with chart_data, average_scores, improvement and session_count
        """
        sessions = self._completed_videos(user_id)

        chart_data = [{
            'session': f"Session {index}",
            'date': session.created_at.strftime('%b %d') if session.created_at else None,
            'overall': session.overall_score or 0,
            'delivery': session.delivery_score or 0,
            'body_language': session.body_language_score or 0,
            'confidence': session.confidence_score or 0,
        } for index, session in enumerate(sessions, 1)]

        average_scores = {
            key: round_half_up(_mean([point[key] for point in chart_data]))
            for key in ('overall', 'delivery', 'body_language', 'confidence')
        }

        improvement = 0
        if len(sessions) >= 2:
            improvement = (sessions[-1].overall_score or 0) - (sessions[0].overall_score or 0)

        return {
            'chart_data': chart_data,
            'average_scores': average_scores,
            'improvement': improvement,
            'session_count': len(sessions),
        }

    def _video_rankings(self) -> List[int]:
        """User ids ordered by their mean video score, best first"""
        scores_by_user = OrderedDict()
        rows = (db.session.query(VideoInterviewSession.user_id, VideoInterviewSession.overall_score)
                .filter(VideoInterviewSession.overall_score.isnot(None))
                .order_by(VideoInterviewSession.user_id)
                .all())
        for user_id, score in rows:
            scores_by_user.setdefault(user_id, []).append(score)

        averages = [(uid, _mean(scores)) for uid, scores in scores_by_user.items()]
        averages.sort(key=lambda item: item[1], reverse=True)
        return [uid for uid, _ in averages]

    def get_performance_analytics(self, user_id: int) -> Dict:
        """
        Combined video and peer performance with global rank

        Returns:
            Dict with user_stats, performance_trend, skill_radar and comparison
        """
        videos = self._completed_videos(user_id)
        ratings = (PeerInterviewRating.query
                   .filter_by(rated_user_id=user_id)
                   .order_by(PeerInterviewRating.created_at.asc(), PeerInterviewRating.id.asc())
                   .all())

        total_sessions = len(videos) + len(ratings)
        video_avg = _mean([v.overall_score or 0 for v in videos])
        peer_avg = _mean([r.overall_score or 0 for r in ratings])
        average_score = (video_avg + peer_avg) / 2 if total_sessions > 0 else 0

        all_scores = [v.overall_score for v in videos] + [r.overall_score for r in ratings]
        all_scores = [score for score in all_scores if score is not None]
        improvement = all_scores[-1] - all_scores[0] if len(all_scores) > 1 else 0

        rankings = self._video_rankings()
        rank, percentile = 0, 0
        if user_id in rankings:
            rank = rankings.index(user_id) + 1
            percentile = (len(rankings) - rank) / len(rankings) * 100

        user_stats = {
            'total_sessions': total_sessions,
            'average_score': round(average_score, 1),
            'improvement': improvement,
            'rank': rank,
            'percentile': round(percentile, 1),
        }

        performance_trend = [{
            'session': f"S{index}",
            'date': v.created_at.strftime('%m/%d/%Y') if v.created_at else None,
            'overall': v.overall_score or 0,
            'delivery': v.delivery_score or 0,
            'body_language': v.body_language_score or 0,
            'confidence': v.confidence_score or 0,
        } for index, v in enumerate(videos, 1)]

        skill_radar = [
            {'skill': 'Delivery', 'score': round(_mean([v.delivery_score or 0 for v in videos]), 1), 'full_mark': 100},
            {'skill': 'Body Language', 'score': round(_mean([v.body_language_score or 0 for v in videos]), 1), 'full_mark': 100},
            {'skill': 'Confidence', 'score': round(_mean([v.confidence_score or 0 for v in videos]), 1), 'full_mark': 100},
            {'skill': 'Communication', 'score': round(_mean([r.communication_score or 0 for r in ratings]), 1), 'full_mark': 10},
            {'skill': 'Technical', 'score': round(_mean([r.technical_score or 0 for r in ratings]), 1), 'full_mark': 10},
        ]

        yours = {
            'Overall Score': user_stats['average_score'],
            'Sessions': total_sessions,
            'Improvement': improvement,
        }
        comparison = [
            {'metric': metric, 'you': yours[metric], **benchmark}
            for metric, benchmark in BENCHMARKS.items()
        ]

        return {
            'user_stats': user_stats,
            'performance_trend': performance_trend,
            'skill_radar': skill_radar,
            'comparison': comparison,
        }

    def get_leaderboard(self) -> Dict:
        """
        Peer leaderboard

        Returns:
            Dict with top_rated (at least 3 ratings, by mean overall rating)
            and most_active (by completed sessions as host or guest)
        """
        rating_scores = OrderedDict()
        for rated_user_id, score in (db.session.query(PeerInterviewRating.rated_user_id,
                                                      PeerInterviewRating.overall_score)
                                     .order_by(PeerInterviewRating.id).all()):
            rating_scores.setdefault(rated_user_id, []).append(score)

        completed_counts = OrderedDict()
        completed = (PeerInterviewSession.query
                     .filter_by(status='completed')
                     .order_by(PeerInterviewSession.id)
                     .all())
        for session in completed:
            for participant in (session.host_user_id, session.guest_user_id):
                if participant is not None:
                    completed_counts[participant] = completed_counts.get(participant, 0) + 1

        user_ids = sorted(set(rating_scores) | set(completed_counts))
        names = {}
        if user_ids:
            for profile in Profile.query.filter(Profile.id.in_(user_ids)).all():
                names[profile.id] = profile.full_name

        entries = []
        for uid in user_ids:
            scores = rating_scores.get(uid, [])
            entries.append({
                'user_id': uid,
                'full_name': names.get(uid) or 'Anonymous',
                'average_rating': round(_mean(scores), 2),
                'total_ratings': len(scores),
                'total_sessions': completed_counts.get(uid, 0),
            })

        top_rated = [e for e in entries if e['total_ratings'] >= LEADERBOARD_MIN_RATINGS]
        top_rated.sort(key=lambda e: e['average_rating'], reverse=True)

        most_active = sorted(entries, key=lambda e: e['total_sessions'], reverse=True)

        return {
            'top_rated': top_rated[:LEADERBOARD_SIZE],
            'most_active': most_active[:LEADERBOARD_SIZE],
        }


def get_dashboard_data(user_id: int) -> Dict:
    """Convenience function for the dashboard payload"""
    service = PracticeAnalyticsService()
    return service.get_dashboard(user_id)


def get_leaderboard_data() -> Dict:
    """Convenience function for the leaderboard payload"""
    service = PracticeAnalyticsService()
    return service.get_leaderboard()
