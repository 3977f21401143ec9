from io import BytesIO

import httpx
import openai


def _post_audio(client, payload=b"RIFF-audio", filename="answer.webm"):
    return client.post("/api/voice/transcribe", data={"audio": (BytesIO(payload), filename)},
                       content_type="multipart/form-data")


def test_requires_audio_file(user_client):
    client, _ = user_client

    response = client.post("/api/voice/transcribe", data={}, content_type="multipart/form-data")

    assert response.status_code == 400
    assert response.get_json() == {"success": False, "transcript": None, "error": "No audio file provided"}


def test_rejects_empty_audio(user_client, fake_llm):
    client, _ = user_client

    response = _post_audio(client, payload=b"")

    assert response.status_code == 400
    assert response.get_json()["error"] == "Audio file is empty"
    assert fake_llm.calls == []


def test_transcribes_audio(user_client, fake_llm):
    client, _ = user_client
    fake_llm.transcript = "  I built a REST API for my college fest.\n"

    response = _post_audio(client)

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "transcript": "I built a REST API for my college fest.",
        "error": None,
    }
    sent_file = fake_llm.calls[0]["file"]
    assert sent_file[0] == "answer.webm"
    assert sent_file[1] == b"RIFF-audio"
    assert fake_llm.calls[0]["response_format"] == "text"


def test_gateway_errors_keep_their_status(user_client, fake_llm):
    client, _ = user_client
    request = httpx.Request("POST", "https://gateway.test/v1/audio/transcriptions")
    fake_llm.error = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)

    response = _post_audio(client)

    assert response.status_code == 429
    body = response.get_json()
    assert body["success"] is False
    assert "status_code" not in body


def test_transcription_unavailable_without_gateway(user_client, no_llm):
    client, _ = user_client

    assert _post_audio(client).status_code == 503
