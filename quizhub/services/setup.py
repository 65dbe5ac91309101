"""Operational bootstrap: schema creation, sample data and store diagnostics."""
import logging

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from quizhub.auth_provider import AttemptLimiter, IdentityProvider
from quizhub.errors import InvalidCredentialsError, format_error_message
from quizhub.extensions import db
from quizhub.identity import promote_to_admin
from quizhub.models import (
    Account, Assignment, Identity, Question, Quiz, REQUIRED_TABLES, utcnow,
)

logger = logging.getLogger(__name__)

# Sample accounts sign in with SAMPLE_PASSWORD
SAMPLE_PASSWORD = 'password123'
SAMPLE_ADMIN = 'admin@example.com'
SAMPLE_USER = 'user@example.com'
SAMPLE_QUIZZES = (
    ('JavaScript Basics', 'Test your knowledge of JavaScript fundamentals'),
    ('React Components', 'Quiz about React component patterns and best practices'),
)


def tables_status():
    present = set(inspect(db.engine).get_table_names())
    return {
        'present': sorted(present),
        'missing': [name for name in REQUIRED_TABLES if name not in present],
    }


def ensure_identity(session, email, password):
    """Return the identity id for these credentials, signing up when the email is new."""
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=1, window=0))
    email = email.strip().lower()
    try:
        return provider.sign_up(email, password).identity.id
    except InvalidCredentialsError:
        return session.query(Identity.id).filter_by(email=email).scalar()


def ensure_admin(session, email, password):
    """Make sure an identity with these credentials exists and its account is an admin."""
    identity_id = ensure_identity(session, email, password)
    account, _ = promote_to_admin(session, account_id=identity_id, email=email.strip().lower())
    return account


def seed_sample_data(session):
    messages = []
    account_ids = {}
    for email, role in ((SAMPLE_ADMIN, 'admin'), (SAMPLE_USER, 'user')):
        account_ids[role] = ensure_identity(session, email, SAMPLE_PASSWORD)
        if session.get(Account, account_ids[role]) is None:
            session.add(Account(id=account_ids[role], email=email, role=role))
            session.commit()
            messages.append(f'Sample {role} {email} created.')
        else:
            messages.append(f'Sample {role} {email} already exists, skipping.')

    if session.query(Quiz).filter_by(title=SAMPLE_QUIZZES[0][0]).first() is not None:
        messages.append('Sample quizzes already exist, skipping.')
        return messages

    quizzes = [Quiz(title=title, description=description, created_at=utcnow()) for title, description in SAMPLE_QUIZZES]
    session.add_all(quizzes)
    session.flush()
    for quiz in quizzes:
        session.add(Question(
            quiz_id=quiz.id,
            prompt='What is a closure in JavaScript?',
            type='multiple_choice',
            options=[
                'A function that returns another function',
                'A function that preserves the outer scope',
                'A design pattern in React',
                'A way to close a connection'
            ],
            correct_answer='A function that preserves the outer scope'
        ))
        session.add(Question(
            quiz_id=quiz.id,
            prompt='Explain the concept of hoisting in JavaScript.',
            type='text',
            options=None,
            correct_answer="Hoisting is JavaScript's behavior of moving declarations to the top of their scope."
        ))
    session.add(Assignment(user_id=account_ids['user'], quiz_id=quizzes[0].id, assigned_at=utcnow()))
    session.commit()
    messages.append(f'{len(quizzes)} sample quizzes created and assigned to {SAMPLE_USER}.')
    return messages


def initialize_schema(session, admin_email=None, admin_password=None, with_sample_data=False):
    messages = []
    missing = tables_status()['missing']
    if missing:
        messages.append(f"Tables missing ({', '.join(missing)}), creating them.")
        db.create_all()
    else:
        messages.append('Tables already exist.')

    if admin_email and admin_password:
        account = ensure_admin(session, admin_email, admin_password)
        messages.append(f'Admin account {account.email} is ready.')

    if with_sample_data:
        messages.extend(seed_sample_data(session))

    tables_exist = not tables_status()['missing']
    for message in messages:
        logger.info(message)
    return {'tables_exist': tables_exist, 'messages': messages}


def diagnostics(app):
    report = {
        'store_url': db.engine.url.render_as_string(hide_password=True),
        'secret_key_length': len(app.config.get('SECRET_KEY') or ''),
        'required_tables': list(REQUIRED_TABLES),
    }
    try:
        db.session.execute(text('SELECT 1'))
        report['connectivity'] = {'ok': True, 'error': None}
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Store connectivity check failed: {str(e)}")
        report['connectivity'] = {'ok': False, 'error': format_error_message(e)}
        return report

    status = tables_status()
    report['tables'] = status['present']
    report['missing_tables'] = status['missing']
    return report
