"""
Career Guidance Service
Collects a user's practice history and current market trends, asks the gateway
for personalized guidance and keeps one recommendation row per user.
Also refreshes the job market trend table per category.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from app import db
from models import (
    Profile, InterviewSession, VideoInterviewSession, JobMarketTrend,
    UserCareerRecommendation
)
from ai_service import generate_career_guidance, research_job_trends
from analytics_service import round_half_up

GUIDANCE_FIELDS = ('recommended_roles', 'skill_gaps', 'learning_priorities',
                   'preparation_roadmap', 'market_insights')

RECENT_TREND_LIMIT = 10


def _as_list(value):
    return value if isinstance(value, list) else []


def _as_text(value):
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class CareerGuidanceService:
    """Career guidance generation and job market research"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def build_user_context(self, user_id: int) -> Dict[str, Any]:
        profile = db.session.get(Profile, user_id)
        interview_count = InterviewSession.query.filter_by(user_id=user_id).count()
        video_sessions = VideoInterviewSession.query.filter_by(user_id=user_id, status='completed').all()
        trends = (JobMarketTrend.query
                  .order_by(JobMarketTrend.last_updated.desc())
                  .limit(RECENT_TREND_LIMIT)
                  .all())

        average_video_score = None
        if video_sessions:
            average_video_score = round_half_up(
                sum(s.overall_score or 0 for s in video_sessions) / len(video_sessions)
            )

        return {
            'profile': profile.to_dict() if profile else {},
            'interviewCount': interview_count,
            'videoInterviewCount': len(video_sessions),
            'averageVideoScore': average_video_score,
            'recentTrends': [trend.to_dict() for trend in trends],
        }

    def generate_for_user(self, user_id: int) -> UserCareerRecommendation:
        """
        Generate guidance and upsert the user's recommendation row

        Raises:
            AIGatewayError: gateway failure or unparseable guidance
        """
        user_context = self.build_user_context(user_id)
        self.logger.info(f"Generating career guidance for user {user_id}")
        guidance = generate_career_guidance(user_context)

        try:
            recommendation = UserCareerRecommendation.query.filter_by(user_id=user_id).first()
            if recommendation is None:
                recommendation = UserCareerRecommendation(user_id=user_id)
                db.session.add(recommendation)

            recommendation.recommended_roles = _as_list(guidance.get('recommended_roles'))
            recommendation.skill_gaps = _as_list(guidance.get('skill_gaps'))
            recommendation.learning_priorities = _as_list(guidance.get('learning_priorities'))
            recommendation.preparation_roadmap = _as_text(guidance.get('preparation_roadmap'))
            recommendation.market_insights = _as_text(guidance.get('market_insights'))
            recommendation.updated_at = datetime.utcnow()

            db.session.commit()
            return recommendation
        except Exception:
            db.session.rollback()
            raise

    def research_category(self, category: str) -> List[JobMarketTrend]:
        """
        Refresh trends for a category. Entries are matched on (category, title):
        existing rows are updated, new titles are inserted.
        """
        entries = research_job_trends(category)
        now = datetime.utcnow()
        stored = []

        try:
            for entry in entries:
                title = str(entry['title']).strip()[:200]
                trend = JobMarketTrend.query.filter_by(category=category, title=title).first()
                if trend is None:
                    trend = JobMarketTrend(category=category, title=title, created_at=now)
                    db.session.add(trend)

                trend.description = _as_text(entry.get('description')) or ''
                trend.demand_level = _as_text(entry.get('demand_level')) or 'Medium'
                trend.growth_rate = _as_text(entry.get('growth_rate'))
                trend.salary_range = _as_text(entry.get('salary_range'))
                trend.trending_skills = _as_list(entry.get('trending_skills'))
                trend.key_companies = _as_list(entry.get('key_companies'))
                trend.preparation_tips = _as_list(entry.get('preparation_tips'))
                trend.last_updated = now
                stored.append(trend)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        self.logger.info(f"Stored {len(stored)} job market trends for {category}")
        return stored


def generate_guidance_for_user(user_id: int) -> UserCareerRecommendation:
    """Convenience function to regenerate a user's career guidance"""
    service = CareerGuidanceService()
    return service.generate_for_user(user_id)


def research_trends(category: str) -> List[JobMarketTrend]:
    """Convenience function to refresh job market trends for one category"""
    service = CareerGuidanceService()
    return service.research_category(category)
