"""
Payload validation for the interview prep forms
Each form type maps its fields to a list of rule names; the first failing rule per field is reported
"""

import re
from typing import Dict, List, Any
from datetime import datetime
from models import User

TREND_CATEGORIES = [
    "Software Engineering",
    "Data Science",
    "Cloud Computing",
    "Cybersecurity",
    "AI/ML Engineering",
    "DevOps",
    "Full Stack Development",
]

FIELD_LABELS = {
    'github_url': 'GitHub URL',
    'linkedin_url': 'LinkedIn URL',
    'duration_seconds': 'Duration',
    'duration_minutes': 'Duration',
    'scheduled_at': 'Scheduled Time',
    'feedback_text': 'Feedback',
}

# rule name -> (regex the value must match, message when it doesn't)
PATTERN_RULES = {
    'email': (r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', "Please enter a valid email address"),
    'url': (r'^https?://[^\s/$.?#].[^\s]*$', "Please enter a valid URL"),
    'linkedin_url': (r'^https?://(www\.)?linkedin\.com/(in|pub|profile)/[a-zA-Z0-9_-]+/?$',
                     "Please enter a valid LinkedIn profile URL"),
    'github_url': (r'^https?://(www\.)?github\.com/[a-zA-Z0-9-]+/?$', "Please enter a valid GitHub profile URL"),
    'password': (r'^.{8,}$', "Password must be at least 8 characters long"),
    'integer': (r'^-?\d+$', "{label} must be a whole number"),
}

WHOLE_NUMBER = re.compile(PATTERN_RULES['integer'][0])

_SCORE_RULES = ['required', 'range:1-5']
_LEVELS = 'choice:beginner|intermediate|advanced'

FORM_RULES = {
    'signup': {
        'email': ['required', 'email', 'unique_email'],
        'password': ['required', 'password'],
        'full_name': ['required', 'max_length:120'],
    },
    'login': {
        'email': ['required'],
        'password': ['required'],
    },
    'profile_update': {
        'full_name': ['max_length:120'],
        'github_url': ['github_url'],
        'linkedin_url': ['linkedin_url'],
    },
    'interview_create': {
        'interview_type': ['required', 'choice:technical|behavioral|resume'],
        'job_profile_id': ['integer'],
    },
    'video_upload': {
        'question': ['required', 'max_length:1000'],
        'duration_seconds': ['integer', 'min_value:0'],
    },
    'peer_session_create': {
        'topic': ['required', 'min_length:3', 'max_length:200'],
        'difficulty_level': ['required', _LEVELS],
        'duration_minutes': ['required', 'choice:15|30|45|60'],
        'scheduled_at': ['required', 'datetime'],
        'meeting_notes': ['max_length:1000'],
    },
    'peer_rating': {
        'communication_score': _SCORE_RULES,
        'technical_score': _SCORE_RULES,
        'problem_solving_score': _SCORE_RULES,
        'overall_score': _SCORE_RULES,
        'feedback_text': ['max_length:2000'],
    },
    'peer_profile': {
        'experience_level': [_LEVELS],
        'bio': ['max_length:1000'],
    },
    'trend_research': {
        'category': ['required', 'choice:' + '|'.join(TREND_CATEGORIES)],
    },
}


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, returning a naive UTC datetime"""
    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def field_label(field: str) -> str:
    return FIELD_LABELS.get(field, field.replace('_', ' ').title())


class FormValidationService:
    """Runs rule lists over form or JSON payloads and collects one message per failing field"""

    def __init__(self):
        self.errors = {}

    def validate_form(self, form_data: Dict[str, Any], validation_rules: Dict[str, List[str]]) -> Dict[str, Any]:
        """
        Check a payload against a rule map

        Args:
            form_data: request.form, a JSON body or any dict-like payload
            validation_rules: field name -> ordered rule names

        Returns:
            {'valid': bool, 'errors': {field: message}}
        """
        self.errors = {}

        for field, rules in validation_rules.items():
            raw = form_data.get(field)
            value = '' if raw is None else str(raw).strip()

            for rule in rules:
                message = self._check(field, value, rule)
                if message:
                    self.errors[field] = message
                    break

        return {'valid': not self.errors, 'errors': self.errors}

    def _check(self, field: str, value: str, rule: str):
        """Returns the error message for a failed rule, None when it passes"""
        label = field_label(field)

        if rule == 'required':
            return None if value else f"{label} is required"

        # Every other rule only applies to values that were actually sent
        if not value:
            return None

        if rule in PATTERN_RULES:
            pattern, message = PATTERN_RULES[rule]
            return None if re.match(pattern, value) else message.format(label=label)

        if rule == 'unique_email':
            taken = User.query.filter_by(email=value.lower()).first()
            return "This email address is already registered" if taken else None

        if rule == 'datetime':
            try:
                parse_iso_datetime(value)
            except ValueError:
                return f"Please enter a valid date and time for {label}"
            return None

        name, _, argument = rule.partition(':')

        if name == 'min_length':
            limit = int(argument or 3)
            return f"{label} must be at least {limit} characters long" if len(value) < limit else None

        if name == 'max_length':
            limit = int(argument or 255)
            return f"{label} must be no more than {limit} characters long" if len(value) > limit else None

        if name == 'min_value':
            floor = int(argument)
            if not WHOLE_NUMBER.match(value) or int(value) < floor:
                return f"{label} must be at least {floor}"
            return None

        if name == 'range':
            low, high = (int(bound) for bound in argument.split('-'))
            if not WHOLE_NUMBER.match(value) or not low <= int(value) <= high:
                return f"{label} must be between {low} and {high}"
            return None

        if name == 'choice':
            options = argument.split('|')
            return None if value in options else f"{label} must be one of: {', '.join(options)}"

        return None

    def get_validation_rules(self, form_type: str) -> Dict[str, List[str]]:
        return FORM_RULES.get(form_type, {})


def validate_form_data(form_data: Dict[str, Any], form_type: str) -> Dict[str, Any]:
    """Shortcut used by the routes: look up the rule map for form_type and run it"""
    validator = FormValidationService()
    return validator.validate_form(form_data, validator.get_validation_rules(form_type))
