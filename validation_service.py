"""
Validation Service for the interview prep app
Password, upload and free-text input checks shared by the routes
"""
import os
import re
from typing import List, Tuple

COMMON_PASSWORDS = {
    'password', 'password1', 'password123', '12345678', '123456789',
    'qwerty123', 'letmein123', 'iloveyou', 'interview', 'interview123',
}


class ValidationService:
    """Validation helpers for accounts, uploaded resumes and recordings, and free text"""

    MIN_PASSWORD_LENGTH = 8
    MAX_PASSWORD_LENGTH = 128

    @staticmethod
    def validate_password(password: str, email: str = None) -> Tuple[bool, List[str]]:
        """
        Check a new account password

        Returns:
            (is_valid, errors) with the most important problem first
        """
        if not password:
            return False, ["Password is required"]

        errors = []
        length = len(password)
        if length < ValidationService.MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {ValidationService.MIN_PASSWORD_LENGTH} characters long")
        elif length > ValidationService.MAX_PASSWORD_LENGTH:
            errors.append(f"Password must be at most {ValidationService.MAX_PASSWORD_LENGTH} characters long")

        lowered = password.lower()
        if lowered in COMMON_PASSWORDS:
            errors.append("Password is too common, please choose a stronger password")

        # Local part of the email, e.g. "alice" in alice@example.com
        mailbox = email.split('@', 1)[0].lower() if email and '@' in email else ''
        if len(mailbox) >= 4 and mailbox in lowered:
            errors.append("Password cannot contain your email name")

        return not errors, errors

    @staticmethod
    def sanitize_input(data: str, max_length: int = None) -> str:
        """Strip markup characters from free text and cap its length"""
        if not data:
            return ""

        cleaned = re.sub(r'[<>"\']', '', str(data))
        if max_length:
            cleaned = cleaned[:max_length]
        return cleaned.strip()

    @staticmethod
    def normalize_tag_list(values, max_items: int = 30, max_length: int = 60) -> List[str]:
        """Trim, sanitize and de-duplicate a list of skills or topics, keeping first-seen order"""
        if not isinstance(values, list):
            return []

        seen = set()
        normalized = []
        for value in values:
            cleaned = ValidationService.sanitize_input(value, max_length)
            if cleaned and cleaned.lower() not in seen:
                seen.add(cleaned.lower())
                normalized.append(cleaned)
        return normalized[:max_items]

    @staticmethod
    def upload_size(file_storage) -> int:
        """Byte size of an uploaded file; the stream is rewound afterwards"""
        file_storage.seek(0, os.SEEK_END)
        size = file_storage.tell()
        file_storage.seek(0)
        return size

    @staticmethod
    def validate_file_upload(file_storage, allowed_extensions: List[str], max_size_mb: int = 5) -> Tuple[bool, str]:
        """Check a resume or video upload against an extension list and size cap"""
        if not file_storage or not file_storage.filename:
            return False, "No file provided"

        extension = os.path.splitext(file_storage.filename)[1].lower()
        if extension not in allowed_extensions:
            return False, f"File type not allowed. Allowed types: {', '.join(allowed_extensions)}"

        size = ValidationService.upload_size(file_storage)
        if size == 0:
            return False, "File is empty"
        if size > max_size_mb * 1024 * 1024:
            return False, f"File size too large. Maximum size: {max_size_mb}MB"

        return True, ""
