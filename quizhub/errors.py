"""Error taxonomy shared by the workflows and the HTTP layer.

Store failures arrive as SQLAlchemy exceptions. The helpers at the bottom
classify them: a missing table means the schema has not been initialised yet,
a unique violation is a benign duplicate, anything else is a generic store
error whose message is shown to the user as is.
"""

# SQLSTATE codes raised by PostgreSQL
UNDEFINED_TABLE = '42P01'
UNIQUE_VIOLATION = '23505'

DATABASE_KEYWORDS = ('database', 'relation', 'table', 'no such table')

SETUP_INSTRUCTIONS = (
    'The database tables needed by QuizHub do not exist yet. '
    'Run "flask --app run init-db" or POST /api/setup/init-db, then retry.'
)


class QuizHubError(Exception):
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ConfigurationError(QuizHubError):
    """The application is missing required configuration."""


class SchemaNotReadyError(QuizHubError):
    """The store schema has not been initialised."""
    status_code = 503

    def __init__(self, message=None):
        super().__init__(message or SETUP_INSTRUCTIONS)


class AuthenticationError(QuizHubError):
    """Authentication failed."""
    status_code = 401


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password."""


class TooManyAttemptsError(AuthenticationError):
    """Too many attempts. Please try again later."""
    status_code = 429


class StoreError(QuizHubError):
    """The data store rejected the request."""


class NotFoundError(QuizHubError):
    """Record not found."""
    status_code = 404


class AccessDeniedError(QuizHubError):
    """You are not allowed to perform this action."""
    status_code = 403


class ValidationError(QuizHubError):
    """Invalid input."""
    status_code = 400


class ConflictError(QuizHubError):
    """The request conflicts with the current state."""
    status_code = 409


class IncompleteSubmissionError(ValidationError):

    def __init__(self, unanswered):
        self.unanswered = list(unanswered)
        super().__init__(
            'Please answer all questions before submitting. '
            f'You have {len(self.unanswered)} unanswered questions.'
        )


class CascadeDeleteError(StoreError):

    def __init__(self, quiz_id, step, cause):
        self.quiz_id = quiz_id
        self.step = step
        self.cause = cause
        super().__init__(f'Deleting quiz {quiz_id} failed while removing {step}: {cause}')


def _sqlstate(exc):
    orig = getattr(exc, 'orig', None)
    return getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)


def is_missing_table(exc):
    if _sqlstate(exc) == UNDEFINED_TABLE:
        return True
    message = str(getattr(exc, 'orig', None) or exc).lower()
    return 'no such table' in message or ('relation' in message and 'does not exist' in message)


def is_unique_violation(exc):
    if exc is None:
        return False
    if _sqlstate(exc) == UNIQUE_VIOLATION:
        return True
    message = str(getattr(exc, 'orig', None) or exc).lower()
    return 'unique' in message


def looks_like_database_error(message):
    message = (message or '').lower()
    return any(keyword in message for keyword in DATABASE_KEYWORDS)


def format_error_message(error):
    if isinstance(error, QuizHubError):
        return error.message
    if isinstance(error, Exception):
        orig = getattr(error, 'orig', None)
        return str(orig or error) or 'An unexpected error occurred'
    if isinstance(error, str):
        return error
    return 'An unexpected error occurred'
