"""
Voice Mode Service
Transcribes spoken interview answers through the gateway's speech-to-text endpoint
"""

import logging

from ai_service import AIGatewayError, transcribe_audio_file
from validation_service import ValidationService

MAX_AUDIO_MB = 25
DEFAULT_RECORDING_NAME = 'recording.webm'


def transcribe_audio(audio_file):
    """
    Turn a recorded answer into text for the interview chat

    Args:
        audio_file: werkzeug FileStorage from the voice mode recorder

    Returns:
        dict with success, transcript and error. Failed calls also carry the
        gateway status_code for the route to return.
    """
    audio_file.seek(0)
    payload = audio_file.read()

    try:
        transcript = transcribe_audio_file(
            audio_file.filename or DEFAULT_RECORDING_NAME,
            payload,
            audio_file.mimetype or None
        )
    except AIGatewayError as e:
        logging.error(f"Voice transcription failed ({e.status_code}): {e.message}")
        return {'success': False, 'transcript': None, 'error': e.message, 'status_code': e.status_code}

    logging.info(f"Transcribed {len(payload)} bytes of audio into {len(transcript)} characters")
    return {'success': True, 'transcript': transcript, 'error': None}


def validate_audio_file(audio_file):
    """Reject empty recordings and anything above the transcription size cap"""
    size = ValidationService.upload_size(audio_file)

    if size == 0:
        return {'valid': False, 'error': 'Audio file is empty'}
    if size > MAX_AUDIO_MB * 1024 * 1024:
        return {
            'valid': False,
            'error': f'Audio file too large. Maximum size is {MAX_AUDIO_MB}MB, got {size / (1024 * 1024):.1f}MB'
        }

    return {'valid': True, 'error': None}
