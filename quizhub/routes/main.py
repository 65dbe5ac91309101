from flask import Blueprint, jsonify, redirect, url_for
from flask_login import current_user

main_bp = Blueprint('main', __name__)


@main_bp.route('/', methods=['GET'])
def index():
    if not current_user.is_authenticated:
        return jsonify({
            'status': 'error',
            'message': 'Please sign in',
            'login_url': url_for('auth.login')
        }), 401
    if current_user.is_admin:
        return redirect(url_for('admin.dashboard'))
    return redirect(url_for('user.dashboard'))
