from datetime import datetime
from io import BytesIO

import pytest

from form_validation_service import FormValidationService, validate_form_data, parse_iso_datetime
from validation_service import ValidationService


class _Upload(BytesIO):
    def __init__(self, data, filename):
        super().__init__(data)
        self.filename = filename


def test_required_fields_are_rejected_when_empty(flask_app):
    with flask_app.app_context():
        result = validate_form_data({"topic": "  ", "difficulty_level": ""}, "peer_session_create")

    assert result["valid"] is False
    assert result["errors"]["topic"] == "Topic is required"
    assert result["errors"]["difficulty_level"] == "Difficulty Level is required"
    assert result["errors"]["scheduled_at"] == "Scheduled Time is required"


def test_valid_peer_session_payload_passes(flask_app):
    with flask_app.app_context():
        result = validate_form_data({
            "topic": "Binary trees",
            "difficulty_level": "intermediate",
            "duration_minutes": 45,
            "scheduled_at": "2030-01-01T10:00:00Z",
        }, "peer_session_create")

    assert result == {"valid": True, "errors": {}}


def test_choice_rule_lists_allowed_values():
    validator = FormValidationService()

    result = validator.validate_form({"duration_minutes": "20"}, {"duration_minutes": ["choice:15|30|45|60"]})

    assert result["errors"]["duration_minutes"] == "Duration must be one of: 15, 30, 45, 60"


@pytest.mark.parametrize("value", ["0", "6", "abc", "2.5"])
def test_range_rule_rejects_out_of_range_scores(value):
    validator = FormValidationService()

    result = validator.validate_form({"overall_score": value}, {"overall_score": ["required", "range:1-5"]})

    assert result["errors"]["overall_score"] == "Overall Score must be between 1 and 5"


def test_profile_urls_are_checked():
    validator = FormValidationService()
    rules = validator.get_validation_rules("profile_update")

    bad = validator.validate_form({"github_url": "https://gitlab.com/me", "linkedin_url": "linkedin"}, rules)
    good = validator.validate_form({
        "github_url": "https://github.com/alice-dev",
        "linkedin_url": "https://www.linkedin.com/in/alice-sharma/",
    }, rules)

    assert set(bad["errors"]) == {"github_url", "linkedin_url"}
    assert good["valid"] is True


def test_optional_fields_may_be_blank():
    validator = FormValidationService()

    result = validator.validate_form({"github_url": ""}, validator.get_validation_rules("profile_update"))

    assert result["valid"] is True


def test_first_failing_rule_wins():
    validator = FormValidationService()

    result = validator.validate_form({"topic": ""}, {"topic": ["required", "min_length:3"]})

    assert result["errors"]["topic"] == "Topic is required"


def test_min_length_rule():
    validator = FormValidationService()

    result = validator.validate_form({"topic": "ab"}, {"topic": ["min_length:3"]})

    assert result["errors"]["topic"] == "Topic must be at least 3 characters long"


def test_parse_iso_datetime_normalizes_to_naive_utc():
    assert parse_iso_datetime("2030-05-01T12:30:00+05:30") == datetime(2030, 5, 1, 7, 0)
    assert parse_iso_datetime("2030-05-01T12:30:00Z") == datetime(2030, 5, 1, 12, 30)
    assert parse_iso_datetime("2030-05-01T12:30:00") == datetime(2030, 5, 1, 12, 30)


def test_password_strength_checks():
    ok, errors = ValidationService.validate_password("password123")
    assert ok is False
    assert "too common" in errors[0]

    ok, errors = ValidationService.validate_password("aliceRocks2024", "alice@example.com")
    assert ok is False
    assert errors == ["Password cannot contain your email name"]

    assert ValidationService.validate_password("Correct-Horse-42", "alice@example.com") == (True, [])


def test_normalize_tag_list_dedupes_case_insensitively():
    tags = ValidationService.normalize_tag_list(["Python", " python ", "SQL", "", "<b>Go</b>"])

    assert tags == ["Python", "SQL", "bGo/b"]


def test_file_upload_validation():
    ok, error = ValidationService.validate_file_upload(_Upload(b"", "empty.pdf"), [".pdf"], 1)
    assert (ok, error) == (False, "File is empty")

    ok, error = ValidationService.validate_file_upload(_Upload(b"data", "notes.exe"), [".pdf"], 1)
    assert ok is False
    assert "File type not allowed" in error

    ok, error = ValidationService.validate_file_upload(_Upload(b"x" * (1024 * 1024 + 1), "big.pdf"), [".pdf"], 1)
    assert (ok, error) == (False, "File size too large. Maximum size: 1MB")

    assert ValidationService.validate_file_upload(_Upload(b"data", "cv.PDF"), [".pdf"], 1) == (True, "")
