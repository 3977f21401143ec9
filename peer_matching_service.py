"""
Peer Matching Service
Scores active peer learning profiles against a requester's skills, experience
level and topic of interest
"""

import logging
from typing import Any, Dict, List, Optional

from models import PeerLearningProfile
from analytics_service import round_half_up

EXPERIENCE_BONUS = 20
TOPIC_BONUS = 15
MAX_MATCHES = 10

NO_PEERS_MESSAGE = "No active peer learners found. Encourage more users to create peer learning profiles!"


def calculate_skill_match(requester_skills: List[str], peer_skills: List[str]) -> int:
    """
    Percentage overlap of two skill lists, compared case-insensitively

    Returns:
        common / max(|A|, |B|) * 100 rounded half up, or 0 when either list is empty
    """
    if not requester_skills or not peer_skills:
        return 0

    requester_set = {str(s).lower() for s in requester_skills}
    peer_set = {str(s).lower() for s in peer_skills}
    match_count = len(requester_set & peer_set)

    return round_half_up(match_count / max(len(requester_set), len(peer_set)) * 100)


def _score_profile(profile: PeerLearningProfile, skills: List[str],
                   experience_level: Optional[str], topic: Optional[str]) -> Dict[str, Any]:
    peer_skills = profile.skills or []
    preferred_topics = profile.preferred_topics or []

    skill_score = calculate_skill_match(skills, peer_skills)
    experience_bonus = EXPERIENCE_BONUS if experience_level and profile.experience_level == experience_level else 0
    topic_bonus = TOPIC_BONUS if topic and topic in preferred_topics else 0

    peer_lower = {str(s).lower() for s in peer_skills}
    user_profile = profile.user.profile if profile.user else None

    return {
        'userId': profile.user_id,
        'fullName': (user_profile.full_name if user_profile else None) or 'Anonymous',
        'email': user_profile.email if user_profile else None,
        'skills': peer_skills,
        'experienceLevel': profile.experience_level,
        'preferredTopics': preferred_topics,
        'bio': profile.bio,
        'matchScore': skill_score + experience_bonus + topic_bonus,
        'skillMatchPercentage': skill_score,
        'matchedSkills': [s for s in skills if str(s).lower() in peer_lower],
    }


def find_peer_matches(requester_id: int, skills: List[str], experience_level: Optional[str] = None,
                      topic: Optional[str] = None) -> Dict[str, Any]:
    """
    Rank active peer learners for a requester

    Returns:
        {'matches': [...], 'totalMatches': n}, or an empty list with a message
        when no other active profile exists
    """
    candidates = (PeerLearningProfile.query
                  .filter(PeerLearningProfile.is_active.is_(True),
                          PeerLearningProfile.user_id != requester_id)
                  .order_by(PeerLearningProfile.id)
                  .all())

    if not candidates:
        logging.info(f"No peer candidates available for user {requester_id}")
        return {'matches': [], 'message': NO_PEERS_MESSAGE}

    scored = [_score_profile(profile, skills, experience_level, topic) for profile in candidates]
    matches = [match for match in scored if match['matchScore'] > 0]
    matches.sort(key=lambda match: match['matchScore'], reverse=True)
    matches = matches[:MAX_MATCHES]

    logging.info(f"Found {len(matches)} peer matches for user {requester_id} out of {len(candidates)} candidates")
    return {'matches': matches, 'totalMatches': len(matches)}
