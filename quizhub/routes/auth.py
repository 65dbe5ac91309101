import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_user, current_user

from quizhub.auth_provider import IdentityProvider
from quizhub.errors import QuizHubError, SETUP_INSTRUCTIONS
from quizhub.extensions import db
from quizhub.identity import IdentityBridge, remember_context

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
logger = logging.getLogger(__name__)


def identity_provider():
    return IdentityProvider(db.session, current_app.extensions['attempt_limiter'])


def start_session(auth_session, status_code=200):
    """Resolve the account behind a fresh identity session and sign it in."""
    context = IdentityBridge(db.session).resolve(auth_session.identity)
    if context.setup_required:
        return jsonify({
            'status': 'error',
            'message': SETUP_INSTRUCTIONS,
            'setup_required': True,
            'user': context.to_dict()
        }), 503
    if context.error:
        return jsonify({'status': 'error', 'message': context.error, 'user': context.to_dict()}), 500

    login_user(context)
    remember_context(context)
    return jsonify({'status': 'success', 'user': context.to_dict()}), status_code


@auth_bp.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    try:
        auth_session = identity_provider().sign_up(data.get('email'), data.get('password'))
    except QuizHubError as e:
        logger.warning(f"Sign-up failed: {e.message}")
        return jsonify({'status': 'error', 'message': e.message}), e.status_code
    return start_session(auth_session, 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    try:
        auth_session = identity_provider().sign_in(data.get('email'), data.get('password'))
    except QuizHubError as e:
        return jsonify({'status': 'error', 'message': e.message}), e.status_code
    return start_session(auth_session)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    identity_id = current_user.account_id if current_user.is_authenticated else None
    identity_provider().sign_out(identity_id)
    return jsonify({'status': 'success', 'message': 'Signed out'})


@auth_bp.route('/me')
def me():
    if not current_user.is_authenticated:
        return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
    return jsonify({'status': 'success', 'user': current_user.to_dict()})
