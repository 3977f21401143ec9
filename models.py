from datetime import datetime
from flask_login import UserMixin
from app import db


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), nullable=False, unique=True)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    # Relationships
    profile = db.relationship('Profile', backref='user', uselist=False, lazy=True)
    interview_sessions = db.relationship('InterviewSession', backref='user', lazy=True)
    video_sessions = db.relationship('VideoInterviewSession', backref='user', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'created_at': _iso(self.created_at),
            'last_login': _iso(self.last_login),
        }


class Profile(db.Model):
    __tablename__ = 'profiles'
    id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)
    full_name = db.Column(db.String(120))
    email = db.Column(db.String(120))
    github_url = db.Column(db.String(200))
    linkedin_url = db.Column(db.String(200))
    resume_url = db.Column(db.String(300))
    resume_content = db.Column(db.Text)  # Extracted resume text for resume-based interviews
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'github_url': self.github_url,
            'linkedin_url': self.linkedin_url,
            'resume_url': self.resume_url,
            'has_resume_content': bool(self.resume_content),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class JobProfile(db.Model):
    __tablename__ = 'job_profiles'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    icon = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    learning_paths = db.relationship('LearningPath', backref='job_profile', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category,
            'description': self.description,
            'icon': self.icon,
            'created_at': _iso(self.created_at),
        }


class LearningPath(db.Model):
    __tablename__ = 'learning_paths'
    id = db.Column(db.Integer, primary_key=True)
    job_profile_id = db.Column(db.Integer, db.ForeignKey('job_profiles.id'))
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    priority = db.Column(db.Integer, default=0)
    resources = db.Column(db.JSON)  # List of {title, url, type}
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'job_profile_id': self.job_profile_id,
            'title': self.title,
            'description': self.description,
            'priority': self.priority,
            'resources': self.resources or [],
            'created_at': _iso(self.created_at),
        }


class UserProgress(db.Model):
    __tablename__ = 'user_progress'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    learning_path_id = db.Column(db.Integer, db.ForeignKey('learning_paths.id'), nullable=False)
    completed = db.Column(db.Boolean, default=False)
    completed_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('user_id', 'learning_path_id', name='_user_learning_path_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'learning_path_id': self.learning_path_id,
            'completed': bool(self.completed),
            'completed_at': _iso(self.completed_at),
            'notes': self.notes,
        }


class InterviewSession(db.Model):
    __tablename__ = 'interview_sessions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    job_profile_id = db.Column(db.Integer, db.ForeignKey('job_profiles.id'))
    interview_type = db.Column(db.String(20), nullable=False)  # 'technical', 'behavioral', 'resume'
    status = db.Column(db.String(20), default='in_progress')  # 'in_progress', 'completed'
    resume_content = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    job_profile = db.relationship('JobProfile', lazy=True)
    messages = db.relationship('InterviewMessage', backref='session', lazy=True,
                               cascade='all, delete-orphan',
                               order_by='InterviewMessage.id')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'job_profile_id': self.job_profile_id,
            'job_profile_title': self.job_profile.title if self.job_profile else None,
            'interview_type': self.interview_type,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'completed_at': _iso(self.completed_at),
        }


class InterviewMessage(db.Model):
    __tablename__ = 'interview_messages'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('interview_sessions.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # 'user', 'assistant'
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'role': self.role,
            'content': self.content,
            'created_at': _iso(self.created_at),
        }


class VideoInterviewSession(db.Model):
    __tablename__ = 'video_interview_sessions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    question = db.Column(db.Text, nullable=False)
    video_url = db.Column(db.String(300))
    duration_seconds = db.Column(db.Integer)
    status = db.Column(db.String(20), default='uploaded')  # 'uploaded', 'analyzing', 'completed', 'failed'
    analysis_result = db.Column(db.JSON)
    feedback_summary = db.Column(db.Text)
    delivery_score = db.Column(db.Integer)
    body_language_score = db.Column(db.Integer)
    confidence_score = db.Column(db.Integer)
    overall_score = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    analyzed_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'question': self.question,
            'video_url': self.video_url,
            'duration_seconds': self.duration_seconds,
            'status': self.status,
            'analysis_result': self.analysis_result,
            'feedback_summary': self.feedback_summary,
            'delivery_score': self.delivery_score,
            'body_language_score': self.body_language_score,
            'confidence_score': self.confidence_score,
            'overall_score': self.overall_score,
            'created_at': _iso(self.created_at),
            'analyzed_at': _iso(self.analyzed_at),
        }


class JobMarketTrend(db.Model):
    __tablename__ = 'job_market_trends'
    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(100), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    demand_level = db.Column(db.String(50), nullable=False)
    growth_rate = db.Column(db.String(50))
    salary_range = db.Column(db.String(100))
    trending_skills = db.Column(db.JSON)
    key_companies = db.Column(db.JSON)
    preparation_tips = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_updated = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'demand_level': self.demand_level,
            'growth_rate': self.growth_rate,
            'salary_range': self.salary_range,
            'trending_skills': self.trending_skills or [],
            'key_companies': self.key_companies or [],
            'preparation_tips': self.preparation_tips or [],
            'last_updated': _iso(self.last_updated),
        }


class UserCareerRecommendation(db.Model):
    __tablename__ = 'user_career_recommendations'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    recommended_roles = db.Column(db.JSON)  # [{title, reason, market_demand}]
    skill_gaps = db.Column(db.JSON)  # [{skill, importance, learning_resource}]
    learning_priorities = db.Column(db.JSON)  # [{priority, topic, reason, timeline}]
    preparation_roadmap = db.Column(db.Text)
    market_insights = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'recommended_roles': self.recommended_roles or [],
            'skill_gaps': self.skill_gaps or [],
            'learning_priorities': self.learning_priorities or [],
            'preparation_roadmap': self.preparation_roadmap,
            'market_insights': self.market_insights,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class PeerLearningProfile(db.Model):
    __tablename__ = 'peer_learning_profiles'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    skills = db.Column(db.JSON)
    experience_level = db.Column(db.String(20), default='intermediate')  # 'beginner', 'intermediate', 'advanced'
    preferred_topics = db.Column(db.JSON)
    bio = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'skills': self.skills or [],
            'experience_level': self.experience_level,
            'preferred_topics': self.preferred_topics or [],
            'bio': self.bio,
            'is_active': bool(self.is_active),
            'updated_at': _iso(self.updated_at),
        }


class PeerInterviewSession(db.Model):
    __tablename__ = 'peer_interview_sessions'
    id = db.Column(db.Integer, primary_key=True)
    host_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    guest_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    topic = db.Column(db.String(200), nullable=False)
    difficulty_level = db.Column(db.String(20), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=30)
    scheduled_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='scheduled')  # 'scheduled', 'in_progress', 'completed', 'cancelled'
    meeting_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    host = db.relationship('User', foreign_keys=[host_user_id], lazy=True)
    guest = db.relationship('User', foreign_keys=[guest_user_id], lazy=True)
    ratings = db.relationship('PeerInterviewRating', backref='session', lazy=True)

    def is_participant(self, user_id):
        return user_id in (self.host_user_id, self.guest_user_id)

    def partner_of(self, user_id):
        return self.guest_user_id if user_id == self.host_user_id else self.host_user_id

    def to_dict(self):
        host_profile = self.host.profile if self.host else None
        guest_profile = self.guest.profile if self.guest else None
        return {
            'id': self.id,
            'host_user_id': self.host_user_id,
            'guest_user_id': self.guest_user_id,
            'host_name': host_profile.full_name if host_profile else None,
            'guest_name': guest_profile.full_name if guest_profile else None,
            'topic': self.topic,
            'difficulty_level': self.difficulty_level,
            'duration_minutes': self.duration_minutes,
            'scheduled_at': _iso(self.scheduled_at),
            'status': self.status,
            'meeting_notes': self.meeting_notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class PeerInterviewRating(db.Model):
    __tablename__ = 'peer_interview_ratings'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('peer_interview_sessions.id'), nullable=False)
    rater_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    rated_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    communication_score = db.Column(db.Integer, nullable=False)
    technical_score = db.Column(db.Integer, nullable=False)
    problem_solving_score = db.Column(db.Integer, nullable=False)
    overall_score = db.Column(db.Integer, nullable=False)
    feedback_text = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # One rating per rater for a given partner in a session
    __table_args__ = (db.UniqueConstraint('session_id', 'rater_user_id', 'rated_user_id', name='_session_rater_rated_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'rater_user_id': self.rater_user_id,
            'rated_user_id': self.rated_user_id,
            'communication_score': self.communication_score,
            'technical_score': self.technical_score,
            'problem_solving_score': self.problem_solving_score,
            'overall_score': self.overall_score,
            'feedback_text': self.feedback_text,
            'created_at': _iso(self.created_at),
        }
