"""Password based identity provider.

Owns the ``identities`` table and the signed-in session. The rest of the
application only sees the :class:`Identity` and :class:`AuthSession` values it
hands out; mapping an identity to an account with a role is the job of
:mod:`quizhub.identity`.
"""
from dataclasses import dataclass
import logging
import secrets
import threading
import time

from flask_login import logout_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash, check_password_hash

from quizhub.errors import (
    InvalidCredentialsError, TooManyAttemptsError, SchemaNotReadyError, StoreError, is_missing_table,
    is_unique_violation,
)
from quizhub.identity import forget_context
from quizhub.models import Identity as IdentityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    identity: Identity
    access_token: str


class AttemptLimiter:
    """Sliding window of failed attempts per email address.

    Only emails with failures inside the window are tracked. Expired entries
    are dropped whenever a new failure is recorded.
    """

    def __init__(self, max_attempts, window, clock=time.monotonic):
        self.max_attempts = max_attempts
        self.window = window
        self.clock = clock
        self._failures = {}
        self._lock = threading.Lock()

    @property
    def tracked_count(self):
        return len(self._failures)

    def _recent(self, key, cutoff):
        recent = [t for t in self._failures.get(key, ()) if t > cutoff]
        if recent:
            self._failures[key] = recent
        else:
            self._failures.pop(key, None)
        return recent

    def _evict(self, cutoff):
        for key in [k for k, times in self._failures.items() if times[-1] <= cutoff]:
            del self._failures[key]

    def check(self, key):
        with self._lock:
            recent = self._recent(key, self.clock() - self.window)
        if len(recent) >= self.max_attempts:
            raise TooManyAttemptsError()

    def record_failure(self, key):
        with self._lock:
            now = self.clock()
            self._evict(now - self.window)
            self._failures.setdefault(key, []).append(now)

    def reset(self, key):
        with self._lock:
            self._failures.pop(key, None)


class IdentityProvider:

    def __init__(self, session, limiter):
        self.session = session
        self.limiter = limiter

    @staticmethod
    def _normalise(email):
        return (email or '').strip().lower()

    def _store_call(self, fn):
        try:
            return fn()
        except SQLAlchemyError as e:
            self.session.rollback()
            if is_missing_table(e):
                raise SchemaNotReadyError() from e
            raise StoreError(str(getattr(e, 'orig', None) or e)) from e

    def sign_up(self, email, password):
        email = self._normalise(email)
        if not email or not password:
            raise InvalidCredentialsError('Email and password are required')
        self.limiter.check(email)

        def insert():
            record = IdentityRecord(email=email, password_hash=generate_password_hash(password))
            self.session.add(record)
            self.session.commit()
            return record

        try:
            record = self._store_call(insert)
        except StoreError as e:
            if is_unique_violation(e.__cause__):
                self.limiter.record_failure(email)
                raise InvalidCredentialsError('An account with this email already exists') from e
            raise
        logger.info(f"Identity {record.id} signed up")
        return self._open_session(record)

    def sign_in(self, email, password):
        email = self._normalise(email)
        self.limiter.check(email)
        record = self._store_call(
            lambda: self.session.query(IdentityRecord).filter_by(email=email).first()
        )
        if record is None or not check_password_hash(record.password_hash, password or ''):
            self.limiter.record_failure(email)
            logger.warning(f"Failed sign-in for {email}")
            raise InvalidCredentialsError()
        self.limiter.reset(email)
        return self._open_session(record)

    def sign_out(self, identity_id=None):
        """End the Flask-Login session and drop the cached auth context."""
        logout_user()
        forget_context()
        if identity_id is not None:
            logger.info(f"Identity {identity_id} signed out")

    def _open_session(self, record):
        return AuthSession(
            identity=Identity(id=record.id, email=record.email),
            access_token=secrets.token_urlsafe(32)
        )
