import pytest
from flask import g
from flask.testing import FlaskClient
from sqlalchemy.exc import OperationalError

from quizhub import create_app
from quizhub.config import TestingConfig
from quizhub.extensions import db
from quizhub.identity import promote_to_admin
from quizhub.models import Account, new_identity_id
from quizhub.services.quizzes import add_question, create_quiz

PASSWORD = 'correct-horse'


class IsolatedClient(FlaskClient):
    """Test client whose requests do not share Flask-Login's cached user.

    The app fixture keeps an app context pushed, so every request reuses its
    ``g``; drop the cached user so each request resolves it from its own cookie.
    """

    def open(self, *args, **kwargs):
        g.pop('_login_user', None)
        return super().open(*args, **kwargs)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    app.test_client_class = IsolatedClient
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def client(app):
    return app.test_client()


def sign_up(client, email, password=PASSWORD):
    return client.post('/auth/signup', json={'email': email, 'password': password})


def sign_in(client, email, password=PASSWORD):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def user_client(app):
    client = app.test_client()
    response = sign_up(client, 'learner@example.com')
    assert response.status_code == 201
    client.account_id = response.get_json()['user']['account_id']
    return client


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    response = sign_up(client, 'boss@example.com')
    assert response.status_code == 201
    account_id = response.get_json()['user']['account_id']
    promote_to_admin(db.session, account_id=account_id)
    # The role is resolved when a session starts
    client.post('/auth/logout')
    assert sign_in(client, 'boss@example.com').status_code == 200
    client.account_id = account_id
    return client


@pytest.fixture
def make_learner(session):
    def factory(email):
        account = Account(id=new_identity_id(), email=email, role='user')
        session.add(account)
        session.commit()
        return account
    return factory


@pytest.fixture
def js_basics(session):
    """Two question quiz whose correct answers are A and B."""
    quiz = create_quiz(session, 'JS Basics', 'Fundamentals')
    add_question(session, quiz.id, 'Pick the first letter', 'multiple_choice',
                 options=['A', 'B', 'C'], correct_index=0)
    add_question(session, quiz.id, 'Type the second letter', 'text', correct_answer='B')
    return quiz


class BrokenSession:
    """Session whose every lookup fails with a store error other than a missing table."""

    def __init__(self):
        self.rolled_back = False

    def get(self, model, ident):
        raise OperationalError('SELECT', {}, Exception('disk I/O error'))

    def rollback(self):
        self.rolled_back = True
