"""
Peer interview routes
Peer learning profiles, matching, session scheduling, the live room with its
signaling channel, ratings and the leaderboard
"""

import logging
from datetime import datetime
from flask import render_template, request, jsonify, url_for, Response, abort
from flask_login import login_required, current_user
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from app import app, db
from models import Profile, PeerLearningProfile, PeerInterviewSession, PeerInterviewRating
from validation_service import ValidationService
from form_validation_service import validate_form_data, parse_iso_datetime
from peer_matching_service import find_peer_matches
from analytics_service import get_leaderboard_data
from signaling_service import hub, SignalRejected, ICE_SERVERS

ENDED_STATUSES = ('cancelled', 'completed')
SCORE_FIELDS = ('communication_score', 'technical_score', 'problem_solving_score', 'overall_score')


def _validation_error(validation):
    errors = validation['errors']
    return jsonify({'error': next(iter(errors.values())), 'errors': errors}), 400


def _get_peer_session(session_id):
    return db.session.get(PeerInterviewSession, session_id)


def _participant_session_or_error(session_id):
    """(session, None) for a participant, otherwise (None, error response)"""
    session = _get_peer_session(session_id)
    if not session:
        return None, (jsonify({'error': 'Peer session not found'}), 404)
    if not session.is_participant(current_user.id):
        return None, (jsonify({'error': 'You are not a participant of this session'}), 403)
    return session, None


def _role_of(session, user_id):
    return 'host' if session.host_user_id == user_id else 'guest'


def _user_name(user_id):
    profile = db.session.get(Profile, user_id) if user_id else None
    return (profile.full_name if profile else None) or 'Anonymous'


# Peer learning profile and matching

@app.route('/api/peer-profile', methods=['GET', 'PUT'])
@login_required
def peer_profile():
    profile = PeerLearningProfile.query.filter_by(user_id=current_user.id).first()

    if request.method == 'GET':
        if not profile:
            return jsonify({'error': 'Peer learning profile not found'}), 404
        return jsonify(profile.to_dict())

    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'peer_profile')
    if not validation['valid']:
        return _validation_error(validation)

    try:
        if profile is None:
            profile = PeerLearningProfile(user_id=current_user.id)
            db.session.add(profile)

        if 'skills' in data:
            profile.skills = ValidationService.normalize_tag_list(data.get('skills'))
        if 'preferred_topics' in data:
            profile.preferred_topics = ValidationService.normalize_tag_list(data.get('preferred_topics'))
        if data.get('experience_level'):
            profile.experience_level = data['experience_level']
        if 'bio' in data:
            profile.bio = ValidationService.sanitize_input(data.get('bio'), 1000) or None
        if 'is_active' in data:
            profile.is_active = bool(data.get('is_active'))

        db.session.commit()
        return jsonify({'success': True, 'profile': profile.to_dict()})
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error saving peer profile for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to save peer learning profile'}), 500


@app.route('/api/peer-matches', methods=['POST'])
@login_required
def peer_matches():
    """Rank other active peer learners against the caller's skills"""
    data = request.get_json(silent=True) or {}
    skills = ValidationService.normalize_tag_list(data.get('skills'))
    if not skills:
        return jsonify({'error': 'Missing required field: skills'}), 400

    try:
        result = find_peer_matches(
            current_user.id,
            skills,
            experience_level=data.get('experienceLevel'),
            topic=data.get('topic')
        )
        return jsonify(result)
    except Exception as e:
        logging.error(f"Error finding peer matches for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to find peer matches'}), 500


# Peer sessions

@app.route('/api/peer-sessions', methods=['GET', 'POST'])
@login_required
def peer_sessions():
    if request.method == 'GET':
        available = (PeerInterviewSession.query
                     .filter(PeerInterviewSession.status == 'scheduled',
                             PeerInterviewSession.guest_user_id.is_(None),
                             PeerInterviewSession.host_user_id != current_user.id)
                     .order_by(PeerInterviewSession.scheduled_at.asc())
                     .all())
        mine = (PeerInterviewSession.query
                .filter(or_(PeerInterviewSession.host_user_id == current_user.id,
                            PeerInterviewSession.guest_user_id == current_user.id))
                .order_by(PeerInterviewSession.scheduled_at.asc())
                .all())
        return jsonify({
            'available': [s.to_dict() for s in available],
            'mine': [dict(s.to_dict(), role=_role_of(s, current_user.id)) for s in mine]
        })

    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'peer_session_create')
    if not validation['valid']:
        return _validation_error(validation)

    scheduled_at = parse_iso_datetime(str(data['scheduled_at']))
    if scheduled_at <= datetime.utcnow():
        return jsonify({'error': 'Scheduled time must be in the future'}), 400

    try:
        session = PeerInterviewSession(
            host_user_id=current_user.id,
            topic=ValidationService.sanitize_input(data['topic'], 200),
            difficulty_level=data['difficulty_level'],
            duration_minutes=int(data['duration_minutes']),
            scheduled_at=scheduled_at,
            status='scheduled',
            meeting_notes=ValidationService.sanitize_input(data.get('meeting_notes'), 1000) or None
        )
        db.session.add(session)
        db.session.commit()
        logging.info(f"Peer session {session.id} scheduled by user {current_user.id} for {scheduled_at}")
        return jsonify({'success': True, 'session': session.to_dict()}), 201
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error creating peer session for user {current_user.id}: {e}")
        return jsonify({'error': 'Failed to create peer session'}), 500


@app.route('/api/peer-sessions/<int:session_id>/join', methods=['POST'])
@login_required
def join_peer_session(session_id):
    session = _get_peer_session(session_id)
    if not session:
        return jsonify({'error': 'Peer session not found'}), 404
    if session.host_user_id == current_user.id:
        return jsonify({'error': 'You cannot join your own session'}), 400
    if session.guest_user_id is not None:
        return jsonify({'error': 'This session already has a partner'}), 409
    if session.status != 'scheduled':
        return jsonify({'error': 'This session is no longer open'}), 409

    try:
        session.guest_user_id = current_user.id
        db.session.commit()
        logging.info(f"User {current_user.id} joined peer session {session_id}")
        return jsonify({'success': True, 'session': session.to_dict()})
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error joining peer session {session_id}: {e}")
        return jsonify({'error': 'Failed to join session'}), 500


@app.route('/api/peer-sessions/<int:session_id>/cancel', methods=['POST'])
@login_required
def cancel_peer_session(session_id):
    session = _get_peer_session(session_id)
    if not session:
        return jsonify({'error': 'Peer session not found'}), 404
    if session.host_user_id != current_user.id:
        return jsonify({'error': 'Only the host can cancel this session'}), 403
    if session.status in ENDED_STATUSES:
        return jsonify({'error': f'Session is already {session.status}'}), 409

    try:
        session.status = 'cancelled'
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error cancelling peer session {session_id}: {e}")
        return jsonify({'error': 'Failed to cancel session'}), 500

    hub.close(session.id)
    return jsonify({'success': True, 'session': session.to_dict()})


@app.route('/api/peer-sessions/<int:session_id>/start', methods=['POST'])
@login_required
def start_peer_session(session_id):
    """Enter the live room: mark the session in progress and hand out ICE servers"""
    session, error = _participant_session_or_error(session_id)
    if error:
        return error
    if session.status in ENDED_STATUSES:
        return jsonify({'error': f'Session is {session.status}'}), 409

    try:
        if session.status != 'in_progress':
            session.status = 'in_progress'
            db.session.commit()
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error starting peer session {session_id}: {e}")
        return jsonify({'error': 'Failed to start session'}), 500

    return jsonify({
        'success': True,
        'session': session.to_dict(),
        'role': _role_of(session, current_user.id),
        'ice_servers': ICE_SERVERS
    })


@app.route('/api/peer-sessions/<int:session_id>/end', methods=['POST'])
@login_required
def end_peer_session(session_id):
    session, error = _participant_session_or_error(session_id)
    if error:
        return error
    if session.status == 'cancelled':
        return jsonify({'error': 'Session was cancelled'}), 409

    try:
        session.status = 'completed'
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error ending peer session {session_id}: {e}")
        return jsonify({'error': 'Failed to end session'}), 500

    hub.close(session.id)
    logging.info(f"Peer session {session_id} ended by user {current_user.id}")
    return jsonify({
        'success': True,
        'session': session.to_dict(),
        'rate_url': url_for('rate_peer_session_page', session_id=session.id)
    })


# Live room pages

@app.route('/peer-interviews/session/<int:session_id>')
@login_required
def peer_session_room(session_id):
    session = _get_peer_session(session_id)
    if not session:
        abort(404)
    if not session.is_participant(current_user.id):
        abort(403)
    return render_template('peer_room.html', session=session, role=_role_of(session, current_user.id))


@app.route('/peer-interviews/session/<int:session_id>/rate')
@login_required
def rate_peer_session_page(session_id):
    session = _get_peer_session(session_id)
    if not session:
        abort(404)
    if not session.is_participant(current_user.id):
        abort(403)
    partner_id = session.partner_of(current_user.id)
    return render_template('peer_rate.html', session=session, partner_name=_user_name(partner_id))


# Signaling

@app.route('/api/peer-sessions/<int:session_id>/signal', methods=['GET'])
@login_required
def peer_signal_stream(session_id):
    """Server-sent-events stream of negotiation messages for this room"""
    session, error = _participant_session_or_error(session_id)
    if error:
        return error
    if session.status in ENDED_STATUSES:
        return jsonify({'error': f'Session is {session.status}'}), 409

    try:
        subscription = hub.subscribe(session.id, current_user.id, session.host_user_id, session.guest_user_id)
    except SignalRejected as e:
        return jsonify({'error': e.reason}), e.status_code

    keepalive = app.config['SIGNAL_KEEPALIVE_SECONDS']
    return Response(subscription.events(keepalive), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})


@app.route('/api/peer-sessions/<int:session_id>/signal', methods=['POST'])
@login_required
def peer_signal_publish(session_id):
    session, error = _participant_session_or_error(session_id)
    if error:
        return error
    if session.status in ENDED_STATUSES:
        return jsonify({'error': f'Session is {session.status}'}), 409

    data = request.get_json(silent=True) or {}
    if 'data' not in data:
        return jsonify({'error': 'Missing signal data'}), 400

    try:
        delivered = hub.publish(session.id, current_user.id, data.get('type'), data['data'],
                                session.host_user_id, session.guest_user_id)
    except SignalRejected as e:
        logging.warning(f"Signal rejected in session {session_id} from user {current_user.id}: {e.reason}")
        return jsonify({'error': e.reason}), e.status_code

    return jsonify({'success': True, 'delivered': delivered})


@app.route('/api/peer-sessions/<int:session_id>/signal/state')
@login_required
def peer_signal_state(session_id):
    session, error = _participant_session_or_error(session_id)
    if error:
        return error
    state = hub.state(session.id)
    state['status'] = session.status
    return jsonify(state)


# Ratings and leaderboard

@app.route('/api/peer-sessions/<int:session_id>/rating', methods=['GET', 'POST'])
@login_required
def peer_session_rating(session_id):
    session, error = _participant_session_or_error(session_id)
    if error:
        return error

    partner_id = session.partner_of(current_user.id)
    existing = PeerInterviewRating.query.filter_by(
        session_id=session.id, rater_user_id=current_user.id
    ).first()

    if request.method == 'GET':
        return jsonify({
            'session': session.to_dict(),
            'partner_id': partner_id,
            'partner_name': _user_name(partner_id) if partner_id else None,
            'already_rated': existing is not None
        })

    if session.guest_user_id is None:
        return jsonify({'error': 'This session has no partner to rate'}), 400
    if existing:
        return jsonify({'error': 'You have already rated this session'}), 409

    data = request.get_json(silent=True) or {}
    validation = validate_form_data(data, 'peer_rating')
    if not validation['valid']:
        return _validation_error(validation)

    try:
        rating = PeerInterviewRating(
            session_id=session.id,
            rater_user_id=current_user.id,
            rated_user_id=partner_id,
            feedback_text=ValidationService.sanitize_input(data.get('feedback_text'), 2000) or None,
            **{field: int(data[field]) for field in SCORE_FIELDS}
        )
        db.session.add(rating)
        db.session.commit()
        logging.info(f"User {current_user.id} rated user {partner_id} in peer session {session_id}")
        return jsonify({'success': True, 'rating': rating.to_dict()}), 201
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'You have already rated this session'}), 409
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error saving rating for peer session {session_id}: {e}")
        return jsonify({'error': 'Failed to submit rating'}), 500


@app.route('/api/leaderboard')
@login_required
def leaderboard():
    try:
        return jsonify(get_leaderboard_data())
    except Exception as e:
        logging.error(f"Error loading leaderboard: {e}")
        return jsonify({'error': 'Failed to load leaderboard'}), 500
