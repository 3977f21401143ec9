"""
Video Interview Service
Question bank for recorded practice answers and the analyze step that scores them
"""

import random
import logging
from datetime import datetime
from typing import Any, Dict

from app import db
from models import VideoInterviewSession
from ai_service import AIGatewayError, analyze_video_interview

COMMON_QUESTIONS = [
    "Tell me about yourself and your background.",
    "Why do you want to work for our company?",
    "Describe a challenging project you worked on.",
    "What are your greatest strengths and weaknesses?",
    "Where do you see yourself in five years?",
    "Tell me about a time you worked in a team.",
    "How do you handle stress and pressure?",
    "Describe a time you failed and what you learned.",
]

VIDEO_EXTENSIONS = ['.webm', '.mp4']
MAX_VIDEO_SIZE_MB = 100


def pick_question() -> str:
    return random.choice(COMMON_QUESTIONS)


class VideoAnalysisService:
    """Runs the gateway analysis for a stored video answer and records the result"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def analyze(self, video_session: VideoInterviewSession) -> Dict[str, Any]:
        """
        Analyze a recorded answer

        The session moves to 'analyzing' before the gateway call, then to
        'completed' with the score columns filled. Any error on the way,
        gateway or storage, leaves it 'failed' and is re-raised.

        Returns:
            The normalized analysis dict

        Raises:
            AIGatewayError: the gateway call failed
        """
        session_id = video_session.id
        video_session.status = 'analyzing'
        db.session.commit()

        try:
            analysis = analyze_video_interview(video_session.question, video_session.duration_seconds)

            video_session.analysis_result = analysis
            video_session.feedback_summary = analysis['feedback_summary']
            video_session.delivery_score = analysis['delivery_score']
            video_session.body_language_score = analysis['body_language_score']
            video_session.confidence_score = analysis['confidence_score']
            video_session.overall_score = analysis['overall_score']
            video_session.status = 'completed'
            video_session.analyzed_at = datetime.utcnow()
            db.session.commit()
        except AIGatewayError as e:
            self.logger.error(f"Video analysis failed for session {session_id}: {e.message}")
            self._mark_failed(video_session)
            raise
        except Exception as e:
            self.logger.error(f"Could not store analysis for video session {session_id}: {e}")
            self._mark_failed(video_session)
            raise

        self.logger.info(f"Video session {session_id} analyzed, overall score {analysis['overall_score']}")
        return analysis

    def _mark_failed(self, video_session):
        db.session.rollback()
        try:
            video_session.status = 'failed'
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            self.logger.error(f"Could not mark video session {video_session.id} as failed: {e}")


def analyze_video_session(video_session: VideoInterviewSession) -> Dict[str, Any]:
    """Convenience function to analyze a video interview session"""
    service = VideoAnalysisService()
    return service.analyze(video_session)
