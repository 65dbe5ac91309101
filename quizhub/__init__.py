import logging

import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from quizhub.auth_provider import AttemptLimiter
from quizhub.config import Config, missing_settings
from quizhub.errors import (
    ConfigurationError, QuizHubError, SETUP_INSTRUCTIONS, is_missing_table, looks_like_database_error,
)
from quizhub.extensions import db, migrate, login_manager, api_bp
from quizhub.identity import restore_context

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    missing = missing_settings(app.config)
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}. "
            'Set them in the environment or in a .env file.'
        )

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Bind the extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Failed sign-in attempts are counted across requests
    app.extensions['attempt_limiter'] = AttemptLimiter(
        max_attempts=app.config['AUTH_MAX_FAILED_ATTEMPTS'],
        window=app.config['AUTH_ATTEMPT_WINDOW']
    )

    from quizhub.routes import auth_bp, main_bp, admin_bp, user_bp
    from quizhub.api import namespaces

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(api_bp)

    namespaces.load_namespaces()

    @login_manager.user_loader
    def load_user(account_id):
        return restore_context(account_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'status': 'error', 'message': 'Authentication required'}), 401

    register_error_handlers(app)
    register_commands(app)

    logger.info("QuizHub application created")
    return app


def register_error_handlers(app):

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'status': 'error', 'message': e.description}), e.code

    @app.errorhandler(QuizHubError)
    def handle_quizhub_error(e):
        return jsonify({'status': 'error', 'message': e.message}), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        db.session.rollback()
        logger.error(f"Store error: {str(e)}")
        if is_missing_table(e):
            return jsonify({'status': 'error', 'message': SETUP_INSTRUCTIONS, 'setup_required': True}), 503
        return jsonify({'status': 'error', 'message': str(getattr(e, 'orig', None) or e)}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {str(e)}")
        if looks_like_database_error(str(e)):
            return jsonify({'status': 'error', 'message': SETUP_INSTRUCTIONS, 'setup_required': True}), 503
        return jsonify({
            'status': 'error',
            'message': 'Something went wrong. Please refresh the page and try again.'
        }), 500


def register_commands(app):

    @app.cli.command('init-db')
    @click.option('--sample', is_flag=True, help='Also create sample accounts and quizzes.')
    def init_db_command(sample):
        """Create the QuizHub tables and the configured admin account."""
        from quizhub.services.setup import initialize_schema

        outcome = initialize_schema(
            db.session,
            admin_email=app.config.get('ADMIN_EMAIL'),
            admin_password=app.config.get('ADMIN_PASSWORD'),
            with_sample_data=sample
        )
        for message in outcome['messages']:
            click.echo(message)
        if not outcome['tables_exist']:
            raise click.ClickException('Some tables are still missing.')
