import os
import json
import logging
from flask import Flask, request, jsonify, redirect, url_for
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

# Root logger; services log through logging.getLogger(__name__)
logging.basicConfig(level=logging.DEBUG)

class Base(DeclarativeBase):
    pass

db = SQLAlchemy(model_class=Base)

# Application and session secret
app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET", "dev-session-secret")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

# SQLite locally, DATABASE_URL (Postgres) when deployed
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL", "sqlite:///" + os.path.join(app.root_path, "interview_prep.db")
)
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

# Storage buckets and request limits
app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", os.path.join(app.root_path, "uploads"))
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 100 * 1024 * 1024))

# LLM gateway (any OpenAI-compatible chat completions endpoint)
app.config["LLM_GATEWAY_URL"] = os.environ.get("LLM_GATEWAY_URL")
app.config["LLM_API_KEY"] = os.environ.get("LLM_API_KEY") or os.environ.get("OPENAI_API_KEY")
app.config["LLM_CHAT_MODEL"] = os.environ.get("LLM_CHAT_MODEL", "gpt-4o-mini")
app.config["LLM_ANALYSIS_MODEL"] = os.environ.get("LLM_ANALYSIS_MODEL", "gpt-4o-mini")
app.config["LLM_GUIDANCE_MODEL"] = os.environ.get("LLM_GUIDANCE_MODEL", "gpt-4o")
app.config["LLM_TRANSCRIBE_MODEL"] = os.environ.get("LLM_TRANSCRIBE_MODEL", "whisper-1")

# Peer room signaling
app.config["SIGNAL_KEEPALIVE_SECONDS"] = float(os.environ.get("SIGNAL_KEEPALIVE_SECONDS", 15))

# Extensions
db.init_app(app)

# Session login; routes opt in with @login_required
login_manager = LoginManager()
login_manager.init_app(app)
login_manager.login_view = 'login'
login_manager.login_message = 'Please log in to access this page.'

@login_manager.user_loader
def load_user(user_id):
    from models import User
    return db.session.get(User, int(user_id))

@login_manager.unauthorized_handler
def unauthorized():
    """API callers get a 401, page visitors are sent to the login route"""
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Authentication required'}), 401
    return redirect(url_for('login', next=request.path))

# Jinja helpers used by the dashboard and peer pages
@app.template_filter('from_json')
def from_json_filter(value):
    """Convert a JSON string to a Python object, passing through already-decoded values"""
    if not value:
        return []
    if isinstance(value, (list, dict)):
        return value
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return []

@app.template_global()
def format_duration(seconds):
    """Format a second count as MM:SS"""
    seconds = int(seconds or 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"

with app.app_context():
    # Tables are registered on db.metadata when models is imported
    import models  # noqa: F401
    db.create_all()
    logging.info("Database tables created")

    from seed_data import seed_reference_data
    seed_reference_data()
