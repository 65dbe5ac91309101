"""Bridge between signed-in identities and application accounts.

The role is resolved once, when a session starts, and kept in an
:class:`AuthContext` that Flask-Login restores on every request from the
signed session cookie. Views read it through ``current_user`` and pass the
ids it holds to the workflows explicitly.
"""
from functools import wraps
import logging

from flask import jsonify, session as login_session
from flask_login import UserMixin, current_user
from sqlalchemy.exc import SQLAlchemyError

from quizhub.errors import NotFoundError, is_missing_table, format_error_message
from quizhub.models import Account

logger = logging.getLogger(__name__)

CONTEXT_KEY = 'auth_context'


class AuthContext(UserMixin):

    def __init__(self, account_id=None, email=None, role=None, setup_required=False, error=None):
        self.account_id = account_id
        self.email = email
        self.role = role
        self.setup_required = setup_required
        self.error = error
        # Resolution has finished once a context exists, whatever the outcome
        self.is_loading = False

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_resolved(self):
        return self.account_id is not None and not self.setup_required and self.error is None

    def get_id(self):
        return self.account_id

    def to_dict(self):
        return {
            'account_id': self.account_id,
            'email': self.email,
            'role': self.role,
            'is_admin': self.is_admin,
            'setup_required': self.setup_required,
            'error': self.error
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            account_id=data.get('account_id'),
            email=data.get('email'),
            role=data.get('role'),
            setup_required=data.get('setup_required', False),
            error=data.get('error')
        )


class IdentityBridge:

    def __init__(self, session):
        self.session = session

    def resolve(self, identity):
        try:
            account = self.session.get(Account, identity.id)
            if account is None:
                account = Account(id=identity.id, email=identity.email, role='user')
                self.session.add(account)
                self.session.commit()
                logger.info(f"Created account {account.id} with default role")
            return AuthContext(account_id=account.id, email=account.email, role=account.role)
        except SQLAlchemyError as e:
            self.session.rollback()
            if is_missing_table(e):
                logger.error("Accounts table does not exist yet, setup is required")
                return AuthContext(email=identity.email, setup_required=True)
            logger.error(f"Error resolving account for identity {identity.id}: {str(e)}")
            return AuthContext(email=identity.email, error=format_error_message(e))


def remember_context(context):
    login_session[CONTEXT_KEY] = context.to_dict()


def forget_context():
    login_session.pop(CONTEXT_KEY, None)


def restore_context(account_id):
    data = login_session.get(CONTEXT_KEY)
    if not data or data.get('account_id') != account_id:
        return None
    return AuthContext.from_dict(data)


def login_required_json(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        if not current_user.is_admin:
            logger.warning(f"Access denied for non-admin account {current_user.account_id}")
            return jsonify({'status': 'error', 'message': 'Administrative privileges required'}), 403
        return view(*args, **kwargs)
    return wrapper


def promote_to_admin(session, account_id=None, email=None):
    """Give an account the admin role, creating the account if only the id is known."""
    account = None
    if account_id:
        account = session.get(Account, account_id)
    elif email:
        account = session.query(Account).filter_by(email=email).first()

    if account is None:
        if not account_id or not email:
            raise NotFoundError('Account not found')
        account = Account(id=account_id, email=email, role='admin')
        session.add(account)
        created = True
    else:
        account.role = 'admin'
        created = False
    session.commit()
    logger.info(f"Account {account.id} promoted to admin")
    return account, created
