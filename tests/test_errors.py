import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from quizhub import create_app
from quizhub.config import TestingConfig
from quizhub.errors import (
    CascadeDeleteError, ConfigurationError, SchemaNotReadyError, is_missing_table, is_unique_violation,
    looks_like_database_error, format_error_message,
)


class PgError(Exception):

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def test_missing_settings_stop_startup():
    class NoSecret(TestingConfig):
        SECRET_KEY = None

    with pytest.raises(ConfigurationError) as excinfo:
        create_app(NoSecret)
    assert 'SECRET_KEY' in excinfo.value.message


def test_missing_table_detection():
    assert is_missing_table(OperationalError('SELECT', {}, Exception('no such table: quizzes')))
    assert is_missing_table(OperationalError('SELECT', {}, PgError('relation "quizzes" does not exist', '42P01')))
    assert not is_missing_table(OperationalError('SELECT', {}, Exception('disk I/O error')))


def test_unique_violation_detection():
    assert is_unique_violation(IntegrityError('INSERT', {}, PgError('duplicate key', '23505')))
    assert is_unique_violation(IntegrityError('INSERT', {}, Exception('UNIQUE constraint failed: accounts.email')))
    assert not is_unique_violation(IntegrityError('INSERT', {}, Exception('FOREIGN KEY constraint failed')))
    assert not is_unique_violation(OperationalError('INSERT', {}, Exception('locked')))
    assert not is_unique_violation(None)


def test_messages():
    assert looks_like_database_error('relation "results" does not exist')
    assert not looks_like_database_error('list index out of range')
    assert 'init-db' in SchemaNotReadyError().message
    assert format_error_message(CascadeDeleteError(3, 'payments', 'boom')) == (
        'Deleting quiz 3 failed while removing payments: boom'
    )
    assert format_error_message('plain') == 'plain'


def test_unexpected_errors_become_json(app, client):
    @app.route('/boom/store')
    def store_boom():
        raise RuntimeError('relation "quizzes" does not exist')

    @app.route('/boom/other')
    def other_boom():
        raise RuntimeError('kaput')

    store = client.get('/boom/store')
    assert store.status_code == 503
    assert store.get_json()['setup_required'] is True

    other = client.get('/boom/other')
    assert other.status_code == 500
    assert 'try again' in other.get_json()['message']

    assert client.get('/no/such/page').status_code == 404
