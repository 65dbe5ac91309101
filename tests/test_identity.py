from flask import session as login_session
from flask_login import current_user, login_user
import pytest

from quizhub.auth_provider import AttemptLimiter, Identity, IdentityProvider
from quizhub.errors import InvalidCredentialsError, NotFoundError, SchemaNotReadyError, TooManyAttemptsError
from quizhub.extensions import db
from quizhub.identity import (
    CONTEXT_KEY, AuthContext, IdentityBridge, promote_to_admin, remember_context, restore_context,
)
from quizhub.models import Account, Identity as IdentityRecord

from conftest import BrokenSession


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_first_resolution_creates_user_account(session):
    identity = Identity(id='a1b2', email='new@example.com')
    bridge = IdentityBridge(session)

    context = bridge.resolve(identity)
    assert context.role == 'user'
    assert context.is_resolved
    assert not context.is_loading

    again = bridge.resolve(identity)
    assert again.account_id == 'a1b2'
    assert session.query(Account).count() == 1


def test_resolution_keeps_existing_role(session):
    session.add(Account(id='boss', email='boss@example.com', role='admin'))
    session.commit()

    context = IdentityBridge(session).resolve(Identity(id='boss', email='boss@example.com'))
    assert context.is_admin


def test_missing_accounts_table_asks_for_setup(session):
    session.commit()
    Account.__table__.drop(db.engine)

    context = IdentityBridge(session).resolve(Identity(id='x', email='x@example.com'))

    assert context.setup_required
    assert context.account_id is None
    assert not context.is_resolved


def test_limiter_window_slides():
    clock = FakeClock()
    limiter = AttemptLimiter(max_attempts=2, window=10, clock=clock)
    limiter.record_failure('a@example.com')
    limiter.record_failure('a@example.com')

    with pytest.raises(TooManyAttemptsError):
        limiter.check('a@example.com')
    limiter.check('b@example.com')

    clock.now += 11
    limiter.check('a@example.com')


def test_provider_signs_up_and_in(session):
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=3, window=60))
    created = provider.sign_up(' Someone@Example.com ', 'pw')
    signed_in = provider.sign_in('someone@example.com', 'pw')

    assert created.identity == signed_in.identity
    assert signed_in.identity.email == 'someone@example.com'
    assert created.access_token != signed_in.access_token


def test_provider_rejects_duplicate_sign_up(session):
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=3, window=60))
    provider.sign_up('dup@example.com', 'pw')
    with pytest.raises(InvalidCredentialsError):
        provider.sign_up('dup@example.com', 'pw')
    assert session.query(IdentityRecord).count() == 1


def test_provider_locks_out_after_failures(session):
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=2, window=60))
    provider.sign_up('target@example.com', 'right')

    for _ in range(2):
        with pytest.raises(InvalidCredentialsError) as excinfo:
            provider.sign_in('target@example.com', 'wrong')
        assert excinfo.value.message == 'Invalid email or password.'

    with pytest.raises(TooManyAttemptsError):
        provider.sign_in('target@example.com', 'right')


def test_provider_reports_missing_schema(session):
    session.commit()
    IdentityRecord.__table__.drop(db.engine)
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=3, window=60))

    with pytest.raises(SchemaNotReadyError):
        provider.sign_in('anyone@example.com', 'pw')


def test_promote_existing_and_missing_accounts(session):
    session.add(Account(id='u1', email='u1@example.com', role='user'))
    session.commit()

    account, created = promote_to_admin(session, email='u1@example.com')
    assert account.role == 'admin'
    assert created is False

    account, created = promote_to_admin(session, account_id='u2', email='u2@example.com')
    assert created is True
    assert account.role == 'admin'

    with pytest.raises(NotFoundError):
        promote_to_admin(session, email='nobody@example.com')


def test_context_round_trips_through_session(app):
    context = AuthContext(account_id='u1', email='u1@example.com', role='admin')
    with app.test_request_context():
        remember_context(context)
        restored = restore_context('u1')
        assert restored.is_admin
        assert restore_context('someone-else') is None


def test_store_failure_yields_error_context():
    session = BrokenSession()

    context = IdentityBridge(session).resolve(Identity(id='x', email='x@example.com'))

    assert context.error == 'disk I/O error'
    assert not context.setup_required
    assert not context.is_loading
    assert not context.is_resolved
    assert session.rolled_back


def test_limiter_does_not_track_unknown_emails():
    limiter = AttemptLimiter(max_attempts=2, window=10, clock=FakeClock())
    for n in range(50):
        limiter.check(f'visitor{n}@example.com')
    assert limiter.tracked_count == 0


def test_limiter_forgets_expired_failures():
    clock = FakeClock()
    limiter = AttemptLimiter(max_attempts=2, window=10, clock=clock)
    limiter.record_failure('old@example.com')

    clock.now += 11
    limiter.record_failure('new@example.com')
    assert limiter.tracked_count == 1

    limiter.reset('new@example.com')
    assert limiter.tracked_count == 0


def test_sign_out_ends_login_session(app, session):
    provider = IdentityProvider(session, AttemptLimiter(max_attempts=3, window=60))
    context = AuthContext(account_id='u1', email='u1@example.com', role='user')

    with app.test_request_context():
        login_user(context)
        remember_context(context)
        assert current_user.is_authenticated

        provider.sign_out('u1')

        assert CONTEXT_KEY not in login_session
        assert not current_user.is_authenticated
