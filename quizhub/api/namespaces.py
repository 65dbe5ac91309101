from functools import wraps
import hmac
import logging

from flask import current_app, request
from flask_restx import Resource, fields
from sqlalchemy.exc import SQLAlchemyError

from quizhub.errors import QuizHubError, format_error_message
from quizhub.extensions import api, db
from quizhub.identity import promote_to_admin
from quizhub.services.setup import diagnostics, initialize_schema

logger = logging.getLogger(__name__)

TOKEN_HEADER = 'X-Setup-Token'

ns_setup = api.namespace('setup', description='Schema initialisation and store diagnostics')

init_model = api.model('InitDbInput', {
    'sample': fields.Boolean(default=False, description='Also create sample accounts and quizzes')
})

promote_model = api.model('PromoteInput', {
    'account_id': fields.String(description='Identity id of the account'),
    'email': fields.String(description='Email of the account')
})


def setup_token_required(method):
    """Reject the call when SETUP_TOKEN is configured and the header does not match it."""
    @wraps(method)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get('SETUP_TOKEN')
        if expected:
            given = request.headers.get(TOKEN_HEADER, '')
            if not hmac.compare_digest(given, expected):
                logger.warning(f"Setup endpoint {request.path} called without a valid token")
                return {'status': 'error', 'message': 'Invalid setup token'}, 403
        return method(*args, **kwargs)
    return wrapper


@ns_setup.route('/init-db')
class InitDb(Resource):
    @ns_setup.expect(init_model)
    @ns_setup.doc('init_db')
    @setup_token_required
    def post(self):
        data = request.get_json(silent=True) or {}
        try:
            outcome = initialize_schema(
                db.session,
                admin_email=current_app.config.get('ADMIN_EMAIL'),
                admin_password=current_app.config.get('ADMIN_PASSWORD'),
                with_sample_data=bool(data.get('sample'))
            )
        except QuizHubError as e:
            return {'status': 'error', 'message': e.message}, e.status_code
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Setup call failed: {str(e)}")
            return {'status': 'error', 'message': format_error_message(e)}, 500
        status = 'success' if outcome['tables_exist'] else 'error'
        return {'status': status, **outcome}, 200 if outcome['tables_exist'] else 500


@ns_setup.route('/promote')
class Promote(Resource):
    @ns_setup.expect(promote_model)
    @ns_setup.doc('promote_to_admin')
    @setup_token_required
    def post(self):
        data = request.get_json(silent=True) or {}
        if not data.get('account_id') and not data.get('email'):
            return {'status': 'error', 'message': 'account_id or email is required'}, 400
        try:
            account, created = promote_to_admin(
                db.session, account_id=data.get('account_id'), email=data.get('email')
            )
        except QuizHubError as e:
            return {'status': 'error', 'message': e.message}, e.status_code
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Setup call failed: {str(e)}")
            return {'status': 'error', 'message': format_error_message(e)}, 500
        return {
            'status': 'success',
            'message': f'{account.email} is now an admin. Sign in again to use the admin area.',
            'created': created,
            'account': account.to_dict()
        }


@ns_setup.route('/diagnostics')
class Diagnostics(Resource):
    @ns_setup.doc('diagnostics')
    @setup_token_required
    def get(self):
        return diagnostics(current_app)


def load_namespaces():
    # Importing this module registers the namespaces on the api blueprint
    pass
