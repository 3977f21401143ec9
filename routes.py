import logging
import os
from datetime import datetime
from flask import render_template, request, redirect, url_for, jsonify, make_response, send_from_directory, Response, stream_with_context, abort
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.security import generate_password_hash, check_password_hash
from app import app, db
from models import (
    User, Profile, JobProfile, LearningPath, UserProgress, InterviewSession,
    InterviewMessage, VideoInterviewSession, JobMarketTrend, UserCareerRecommendation
)
from ai_service import AIGatewayError, open_chat_stream
from validation_service import ValidationService
from form_validation_service import validate_form_data, TREND_CATEGORIES
from storage_service import (
    RESUMES_BUCKET, VIDEOS_BUCKET, StorageError, save_upload, local_path, bucket_path
)
from resume_parser import RESUME_FORMATS, extract_resume_text
from interview_chat_service import InterviewChatService, relay_chat_stream, save_assistant_message
from video_analysis_service import VIDEO_EXTENSIONS, MAX_VIDEO_SIZE_MB, pick_question, analyze_video_session
from career_guidance_service import generate_guidance_for_user, research_trends
from roadmap_export_service import render_roadmap_pdf, roadmap_filename
from analytics_service import PracticeAnalyticsService, get_dashboard_data
from voice_service import transcribe_audio, validate_audio_file

MAX_RESUME_SIZE_MB = 10

SSE_HEADERS = {'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}


def _request_data():
    """JSON body when present, otherwise the submitted form"""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _wants_json():
    return request.is_json or request.path.startswith('/api/')


def _first_error(errors):
    return next(iter(errors.values())) if errors else 'Invalid request'


def _gateway_error(e):
    return jsonify({'error': e.message}), e.status_code


def _safe_next(target):
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


def _file_extension(filename):
    return os.path.splitext(filename)[1].lower().lstrip('.')


# Pages

@app.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(url_for('dashboard'))
    return redirect(url_for('login'))


@app.route('/dashboard')
@login_required
def dashboard():
    """Practice dashboard"""
    return render_template('dashboard.html', data=get_dashboard_data(current_user.id))


# Authentication

@app.route('/signup', methods=['GET', 'POST'])
def signup():
    """Create an account and its profile, then sign in"""
    if request.method == 'GET':
        return render_template('login.html', mode='signup')

    data = _request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    full_name = ValidationService.sanitize_input(data.get('full_name'), 120)

    validation = validate_form_data({'email': email, 'password': password, 'full_name': full_name}, 'signup')
    errors = validation['errors']
    if 'password' not in errors:
        strong, password_errors = ValidationService.validate_password(password, email)
        if not strong:
            errors['password'] = password_errors[0]

    if errors:
        if _wants_json():
            return jsonify({'error': _first_error(errors), 'errors': errors}), 400
        return render_template('login.html', mode='signup', validation_errors=errors,
                               form_data={'email': email, 'full_name': full_name}), 400

    try:
        user = User(email=email, password_hash=generate_password_hash(password))
        db.session.add(user)
        db.session.flush()

        profile = Profile(id=user.id, full_name=full_name, email=email)
        db.session.add(profile)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logging.error(f"Signup error for {email}: {e}")
        if _wants_json():
            return jsonify({'error': 'Failed to create account'}), 500
        return render_template('login.html', mode='signup',
                               validation_errors={'general': 'Failed to create account. Please try again.'},
                               form_data={'email': email, 'full_name': full_name}), 500

    login_user(user)
    logging.info(f"New user signed up: {email}")

    if _wants_json():
        return jsonify({'success': True, 'user': user.to_dict(), 'profile': profile.to_dict()}), 201
    return redirect(url_for('dashboard'))


@app.route('/login', methods=['GET', 'POST'])
def login():
    """Email and password login"""
    if request.method == 'GET':
        return render_template('login.html', mode='login', next=_safe_next(request.args.get('next')))

    data = _request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    next_page = _safe_next(request.args.get('next') or data.get('next'))

    validation = validate_form_data({'email': email, 'password': password}, 'login')
    if not validation['valid']:
        if _wants_json():
            return jsonify({'error': _first_error(validation['errors']), 'errors': validation['errors']}), 400
        return render_template('login.html', mode='login', validation_errors=validation['errors'],
                               form_data={'email': email}, next=next_page), 400

    try:
        user = User.query.filter_by(email=email).first()
        if not user or not check_password_hash(user.password_hash, password):
            logging.warning(f"Failed login attempt for {email}")
            if _wants_json():
                return jsonify({'error': 'Invalid email or password'}), 401
            return render_template('login.html', mode='login',
                                   validation_errors={'general': 'Invalid email or password'},
                                   form_data={'email': email}, next=next_page), 401

        login_user(user)
        user.last_login = datetime.utcnow()
        db.session.commit()
        logging.info(f"User logged in: {email}")
    except Exception as e:
        db.session.rollback()
        logging.error(f"Login error: {e}")
        if _wants_json():
            return jsonify({'error': 'Login failed'}), 500
        return render_template('login.html', mode='login',
                               validation_errors={'general': 'Login failed due to a system error. Please try again.'},
                               form_data={'email': email}, next=next_page), 500

    redirect_url = next_page or url_for('dashboard')
    if _wants_json():
        return jsonify({'success': True, 'user': user.to_dict(), 'redirect': redirect_url})
    return redirect(redirect_url)


@app.route('/logout')
@login_required
def logout():
    """User logout"""
    logout_user()
    return redirect(url_for('login'))


@app.route('/api/auth/session')
@login_required
def auth_session():
    profile = db.session.get(Profile, current_user.id)
    return jsonify({
        'user': current_user.to_dict(),
        'profile': profile.to_dict() if profile else None
    })


# Profile

@app.route('/api/profile', methods=['GET', 'PUT'])
@login_required
def profile_api():
    profile = db.session.get(Profile, current_user.id)
    if not profile:
        return jsonify({'error': 'Profile not found'}), 404

    if request.method == 'GET':
        return jsonify(profile.to_dict())

    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'profile_update')
    if not validation['valid']:
        return jsonify({'error': _first_error(validation['errors']), 'errors': validation['errors']}), 400

    try:
        if 'full_name' in data:
            profile.full_name = ValidationService.sanitize_input(data.get('full_name'), 120) or None
        for field in ('github_url', 'linkedin_url'):
            if field in data:
                setattr(profile, field, (data.get(field) or '').strip() or None)
        db.session.commit()
        return jsonify({'success': True, 'profile': profile.to_dict()})
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error updating profile for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to update profile'}), 500


@app.route('/api/profile/resume', methods=['POST'])
@login_required
def upload_resume():
    """Store a resume and extract its text for resume-based interviews"""
    resume_file = request.files.get('resume')
    is_valid, error = ValidationService.validate_file_upload(resume_file, RESUME_FORMATS, MAX_RESUME_SIZE_MB)
    if not is_valid:
        return jsonify({'error': error}), 400

    try:
        extension = _file_extension(resume_file.filename)
        object_path, public_url = save_upload(RESUMES_BUCKET, current_user.id, resume_file, extension)
        resume_text = extract_resume_text(local_path(RESUMES_BUCKET, object_path), resume_file.filename)

        profile = db.session.get(Profile, current_user.id)
        profile.resume_url = public_url
        profile.resume_content = resume_text or None
        db.session.commit()

        logging.info(f"Resume uploaded for user {current_user.id}, extracted {len(resume_text)} chars")
        return jsonify({
            'success': True,
            'resume_url': public_url,
            'has_resume_content': bool(resume_text)
        })
    except Exception as e:
        db.session.rollback()
        logging.error(f"Resume upload error for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to upload resume'}), 500


@app.route('/api/profile/stats')
@login_required
def profile_stats():
    return jsonify(PracticeAnalyticsService().get_profile_stats(current_user.id))


@app.route('/api/profile/activity')
@login_required
def profile_activity():
    return jsonify({'sessions': PracticeAnalyticsService().get_recent_activity(current_user.id)})


@app.route('/api/profile/skill-gaps')
@login_required
def profile_skill_gaps():
    return jsonify({'skill_gaps': PracticeAnalyticsService().get_skill_gaps(current_user.id)})


# Storage

@app.route('/storage/<bucket>/<path:object_path>')
@login_required
def storage_object(bucket, object_path):
    """Serve a stored file to its owner"""
    if object_path.split('/', 1)[0] != str(current_user.id):
        abort(404)
    try:
        directory = bucket_path(bucket)
    except StorageError:
        abort(404)
    return send_from_directory(directory, object_path)


# Learning paths

@app.route('/api/job-profiles')
@login_required
def job_profiles():
    profiles = JobProfile.query.order_by(JobProfile.title).all()
    return jsonify({'job_profiles': [p.to_dict() for p in profiles]})


@app.route('/api/learning-paths')
@login_required
def learning_paths():
    query = LearningPath.query
    job_profile_id = request.args.get('job_profile_id', type=int)
    if job_profile_id is not None:
        query = query.filter_by(job_profile_id=job_profile_id)
    paths = query.order_by(LearningPath.priority, LearningPath.id).all()

    progress = {
        p.learning_path_id: p
        for p in UserProgress.query.filter_by(user_id=current_user.id).all()
    }

    result = []
    for path in paths:
        item = path.to_dict()
        entry = progress.get(path.id)
        item['completed'] = bool(entry and entry.completed)
        item['completed_at'] = entry.completed_at.isoformat() if entry and entry.completed_at else None
        result.append(item)

    return jsonify({'learning_paths': result})


@app.route('/api/learning-paths/<int:path_id>/progress', methods=['POST'])
@login_required
def update_learning_progress(path_id):
    if not db.session.get(LearningPath, path_id):
        return jsonify({'error': 'Learning path not found'}), 404

    data = request.get_json(silent=True) or {}
    completed = bool(data.get('completed'))

    try:
        progress = UserProgress.query.filter_by(user_id=current_user.id, learning_path_id=path_id).first()
        if progress is None:
            progress = UserProgress(user_id=current_user.id, learning_path_id=path_id)
            db.session.add(progress)

        progress.completed = completed
        progress.completed_at = datetime.utcnow() if completed else None
        if 'notes' in data:
            progress.notes = ValidationService.sanitize_input(data.get('notes'), 2000) or None
        db.session.commit()
        return jsonify({'success': True, 'progress': progress.to_dict()})
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error updating learning progress for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to update progress'}), 500


# Mock interviews

def _get_owned_interview(session_id):
    return InterviewSession.query.filter_by(id=session_id, user_id=current_user.id).first()


@app.route('/api/interviews', methods=['GET', 'POST'])
@login_required
def interviews():
    if request.method == 'GET':
        sessions = (InterviewSession.query
                    .filter_by(user_id=current_user.id)
                    .order_by(InterviewSession.created_at.desc(), InterviewSession.id.desc())
                    .all())
        return jsonify({'sessions': [s.to_dict() for s in sessions]})

    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'interview_create')
    if not validation['valid']:
        return jsonify({'error': _first_error(validation['errors']), 'errors': validation['errors']}), 400

    job_profile_id = data.get('job_profile_id')
    if job_profile_id not in (None, ''):
        job_profile_id = int(job_profile_id)
        if not db.session.get(JobProfile, job_profile_id):
            return jsonify({'error': 'Job profile not found'}), 404
    else:
        job_profile_id = None

    try:
        profile = db.session.get(Profile, current_user.id)
        session = InterviewSession(
            user_id=current_user.id,
            job_profile_id=job_profile_id,
            interview_type=data['interview_type'],
            status='in_progress',
            resume_content=profile.resume_content if profile else None
        )
        db.session.add(session)
        db.session.commit()
        logging.info(f"Interview session {session.id} ({session.interview_type}) created for user {current_user.id}")
        return jsonify({'success': True, 'session': session.to_dict()}), 201
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error creating interview for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to create interview session'}), 500


@app.route('/api/interviews/<int:session_id>')
@login_required
def interview_detail(session_id):
    session = _get_owned_interview(session_id)
    if not session:
        return jsonify({'error': 'Interview session not found'}), 404
    return jsonify({
        'session': session.to_dict(),
        'messages': [m.to_dict() for m in session.messages]
    })


@app.route('/api/interviews/<int:session_id>/messages', methods=['POST'])
@login_required
def interview_message(session_id):
    """Send a candidate turn and stream the interviewer reply"""
    session = _get_owned_interview(session_id)
    if not session:
        return jsonify({'error': 'Interview session not found'}), 404

    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    if not content and session.messages:
        return jsonify({'error': 'Message content is required'}), 400

    if content:
        try:
            db.session.add(InterviewMessage(session_id=session.id, role='user', content=content))
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logging.error(f"Error storing message for interview {session_id}: {e}")
            return jsonify({'error': 'Failed to save message'}), 500

    messages = InterviewChatService().build_session_messages(session)
    try:
        stream = open_chat_stream(messages)
    except AIGatewayError as e:
        return _gateway_error(e)

    stored_session_id = session.id
    relay = relay_chat_stream(stream, on_complete=lambda text: save_assistant_message(stored_session_id, text))
    return Response(stream_with_context(relay), mimetype='text/event-stream', headers=SSE_HEADERS)


@app.route('/api/interviews/<int:session_id>/complete', methods=['POST'])
@login_required
def complete_interview(session_id):
    session = _get_owned_interview(session_id)
    if not session:
        return jsonify({'error': 'Interview session not found'}), 404

    try:
        session.status = 'completed'
        session.completed_at = datetime.utcnow()
        db.session.commit()
        return jsonify({'success': True, 'session': session.to_dict()})
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error completing interview {session_id}: {e}")
        return jsonify({'error': 'Failed to complete interview'}), 500


@app.route('/api/adaptive-interview/chat', methods=['POST'])
@login_required
def adaptive_interview_chat():
    """Stream an interview turn focused on the caller's skill gaps"""
    recommendation = UserCareerRecommendation.query.filter_by(user_id=current_user.id).first()
    if not recommendation:
        return jsonify({'error': 'Generate career guidance first'}), 404

    data = request.get_json(silent=True) or {}
    conversation = data.get('messages') or []
    if not isinstance(conversation, list):
        return jsonify({'error': 'messages must be a list'}), 400

    skill_gaps = data.get('skillGaps')
    if not isinstance(skill_gaps, list):
        skill_gaps = recommendation.skill_gaps or []

    messages = InterviewChatService().build_adaptive_messages(skill_gaps, conversation)
    try:
        stream = open_chat_stream(messages)
    except AIGatewayError as e:
        return _gateway_error(e)

    return Response(relay_chat_stream(stream), mimetype='text/event-stream', headers=SSE_HEADERS)


# Video interviews

def _get_owned_video(video_id):
    return VideoInterviewSession.query.filter_by(id=video_id, user_id=current_user.id).first()


@app.route('/api/video-interviews/question')
@login_required
def video_question():
    return jsonify({'question': pick_question()})


@app.route('/api/video-interviews', methods=['GET', 'POST'])
@login_required
def video_interviews():
    if request.method == 'GET':
        sessions = (VideoInterviewSession.query
                    .filter_by(user_id=current_user.id)
                    .order_by(VideoInterviewSession.created_at.desc(), VideoInterviewSession.id.desc())
                    .all())
        return jsonify({'sessions': [s.to_dict() for s in sessions]})

    video_file = request.files.get('video')
    is_valid, error = ValidationService.validate_file_upload(video_file, VIDEO_EXTENSIONS, MAX_VIDEO_SIZE_MB)
    if not is_valid:
        return jsonify({'error': error}), 400

    validation = validate_form_data(request.form, 'video_upload')
    if not validation['valid']:
        return jsonify({'error': _first_error(validation['errors']), 'errors': validation['errors']}), 400

    try:
        extension = _file_extension(video_file.filename)
        object_path, public_url = save_upload(VIDEOS_BUCKET, current_user.id, video_file, extension)

        duration = request.form.get('duration_seconds')
        video_session = VideoInterviewSession(
            user_id=current_user.id,
            question=request.form['question'].strip(),
            video_url=public_url,
            duration_seconds=int(duration) if duration else None,
            status='uploaded'
        )
        db.session.add(video_session)
        db.session.commit()
        logging.info(f"Video interview {video_session.id} uploaded by user {current_user.id} ({object_path})")
        return jsonify({'success': True, 'session': video_session.to_dict()}), 201
    except Exception as e:
        db.session.rollback()
        logging.error(f"Video upload error for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to upload video'}), 500


@app.route('/api/video-interviews/<int:video_id>')
@login_required
def video_interview_detail(video_id):
    video_session = _get_owned_video(video_id)
    if not video_session:
        return jsonify({'error': 'Video interview not found'}), 404
    return jsonify(video_session.to_dict())


@app.route('/api/video-interviews/<int:video_id>/analyze', methods=['POST'])
@login_required
def analyze_video(video_id):
    video_session = _get_owned_video(video_id)
    if not video_session:
        return jsonify({'error': 'Video interview not found'}), 404

    try:
        analysis = analyze_video_session(video_session)
        return jsonify({'success': True, 'analysis': analysis})
    except AIGatewayError as e:
        return _gateway_error(e)
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error analyzing video interview {video_id}: {e}")
        return jsonify({'error': 'Failed to analyze video interview'}), 500


# Career guidance and job market

@app.route('/api/career-guidance', methods=['GET', 'POST'])
@login_required
def career_guidance():
    if request.method == 'GET':
        recommendation = UserCareerRecommendation.query.filter_by(user_id=current_user.id).first()
        if not recommendation:
            return jsonify({'error': 'No career guidance generated yet'}), 404
        return jsonify(recommendation.to_dict())

    try:
        recommendation = generate_guidance_for_user(current_user.id)
        return jsonify({'success': True, 'guidance': recommendation.to_dict()})
    except AIGatewayError as e:
        return _gateway_error(e)
    except Exception as e:
        logging.error(f"Error generating career guidance for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to generate career guidance'}), 500


@app.route('/api/career-guidance/roadmap.pdf')
@login_required
def roadmap_pdf():
    """Download the career roadmap as a PDF"""
    recommendation = UserCareerRecommendation.query.filter_by(user_id=current_user.id).first()
    if not recommendation:
        return jsonify({'error': 'No career guidance generated yet'}), 404

    profile = db.session.get(Profile, current_user.id)
    user_name = (profile.full_name if profile else None) or 'User'

    try:
        pdf_bytes = render_roadmap_pdf(recommendation.to_dict(), user_name)
    except Exception as e:
        logging.error(f"Error generating roadmap PDF for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to generate PDF'}), 500

    response = make_response(pdf_bytes)
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'attachment; filename="{roadmap_filename(user_name)}"'
    return response


@app.route('/api/job-market/research', methods=['POST'])
@login_required
def job_market_research():
    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'trend_research')
    if not validation['valid']:
        return jsonify({'error': _first_error(validation['errors']), 'errors': validation['errors']}), 400

    try:
        trends = research_trends(data['category'])
        return jsonify({'success': True, 'trends': [t.to_dict() for t in trends]})
    except AIGatewayError as e:
        return _gateway_error(e)
    except Exception as e:
        logging.error(f"Error researching job trends for {data.get('category')}: {e}")
        return jsonify({'error': 'Failed to research job trends'}), 500


@app.route('/api/job-market/trends')
@login_required
def job_market_trends():
    query = JobMarketTrend.query
    category = request.args.get('category')
    if category:
        query = query.filter_by(category=category)
    trends = query.order_by(JobMarketTrend.last_updated.desc(), JobMarketTrend.id.desc()).all()
    return jsonify({'trends': [t.to_dict() for t in trends]})


@app.route('/api/job-market/categories')
@login_required
def job_market_categories():
    return jsonify({'categories': TREND_CATEGORIES})


# Analytics

@app.route('/api/dashboard')
@login_required
def dashboard_api():
    try:
        return jsonify(get_dashboard_data(current_user.id))
    except Exception as e:
        logging.error(f"Error loading dashboard for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to load dashboard'}), 500


@app.route('/api/analytics/progress')
@login_required
def analytics_progress():
    try:
        return jsonify(PracticeAnalyticsService().get_progress_analytics(current_user.id))
    except Exception as e:
        logging.error(f"Error loading progress analytics for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to load progress analytics'}), 500


@app.route('/api/analytics/performance')
@login_required
def analytics_performance():
    try:
        return jsonify(PracticeAnalyticsService().get_performance_analytics(current_user.id))
    except Exception as e:
        logging.error(f"Error loading performance analytics for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to load performance analytics'}), 500


# Voice mode

@app.route('/api/voice/transcribe', methods=['POST'])
@login_required
def transcribe_voice():
    """Transcribe a recorded answer for voice mode"""
    audio_file = request.files.get('audio')
    if not audio_file:
        return jsonify({'success': False, 'transcript': None, 'error': 'No audio file provided'}), 400

    validation = validate_audio_file(audio_file)
    if not validation['valid']:
        return jsonify({'success': False, 'transcript': None, 'error': validation['error']}), 400

    result = transcribe_audio(audio_file)
    if not result['success']:
        status_code = result.pop('status_code', 500)
        return jsonify(result), status_code
    return jsonify(result)


# Error handlers

@app.errorhandler(404)
def not_found(e):
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Not found'}), 404
    return e


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Uploaded file is too large'}), 413
    return e


@app.errorhandler(500)
def internal_error(e):
    db.session.rollback()
    logging.error(f"Unhandled error on {request.path}: {getattr(e, 'original_exception', e)}")
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Internal server error'}), 500
    if isinstance(e, HTTPException):
        return e
    return 'Internal server error', 500
