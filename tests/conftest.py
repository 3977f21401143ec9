import os
import tempfile
from types import SimpleNamespace

import pytest

_TEST_ROOT = tempfile.mkdtemp(prefix="interview-prep-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TEST_ROOT, "test.db")
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["UPLOAD_FOLDER"] = os.path.join(_TEST_ROOT, "uploads")
os.environ.pop("LLM_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)

from werkzeug.security import generate_password_hash  # noqa: E402

from main import app  # noqa: E402
from app import db  # noqa: E402
from models import User, Profile  # noqa: E402
from seed_data import seed_reference_data  # noqa: E402
import ai_service  # noqa: E402
import routes_peer  # noqa: E402
from signaling_service import SignalingHub  # noqa: E402

DEFAULT_PASSWORD = "Correct-Horse-42"


class FakeLLM:
    """Stands in for the OpenAI client: chat.completions.create and audio.transcriptions.create"""

    def __init__(self):
        self.replies = []
        self.stream_chunks = []
        self.error = None
        self.transcript = ""
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._transcribe))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self._stream()
        reply = self.replies.pop(0) if self.replies else ""
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    def _stream(self):
        for piece in self.stream_chunks:
            if isinstance(piece, Exception):
                raise piece
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])

    def _transcribe(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.transcript


@pytest.fixture
def flask_app():
    app.config.update(TESTING=True, SIGNAL_KEEPALIVE_SECONDS=0.05)
    with app.app_context():
        db.drop_all()
        db.create_all()
        seed_reference_data()
        db.session.remove()
    yield app


@pytest.fixture(autouse=True)
def signaling_hub(monkeypatch):
    hub = SignalingHub()
    monkeypatch.setattr(routes_peer, "hub", hub)
    return hub


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(ai_service, "client", fake)
    return fake


@pytest.fixture
def no_llm(monkeypatch):
    monkeypatch.setattr(ai_service, "client", None)


def create_user(flask_app, email, full_name="Test User", password=DEFAULT_PASSWORD):
    with flask_app.app_context():
        user = User(email=email, password_hash=generate_password_hash(password))
        db.session.add(user)
        db.session.flush()
        db.session.add(Profile(id=user.id, full_name=full_name, email=email))
        db.session.commit()
        return user.id


def login(client, email, password=DEFAULT_PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def make_client(flask_app):
    """Factory returning (logged-in test client, user id)"""

    def _make(email, full_name="Test User"):
        user_id = create_user(flask_app, email, full_name)
        client = flask_app.test_client()
        response = login(client, email)
        assert response.status_code == 200
        return client, user_id

    return _make


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def user_client(make_client):
    return make_client("alice@example.com", "Alice Sharma")
