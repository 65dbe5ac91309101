import os
from dotenv import load_dotenv

load_dotenv()

# Settings without which the application cannot reach its store or sign sessions
REQUIRED_SETTINGS = ('SQLALCHEMY_DATABASE_URI', 'SECRET_KEY')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUIZ_PRICE = float(os.getenv('QUIZ_PRICE', '9.99'))
    AUTH_MAX_FAILED_ATTEMPTS = int(os.getenv('AUTH_MAX_FAILED_ATTEMPTS', '5'))
    AUTH_ATTEMPT_WINDOW = int(os.getenv('AUTH_ATTEMPT_WINDOW', '300'))
    SETUP_TOKEN = os.getenv('SETUP_TOKEN')
    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    RESTX_MASK_SWAGGER = False


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SETUP_TOKEN = None
    ADMIN_EMAIL = None
    ADMIN_PASSWORD = None
    AUTH_MAX_FAILED_ATTEMPTS = 3
    AUTH_ATTEMPT_WINDOW = 300
    QUIZ_PRICE = 9.99


def missing_settings(config):
    """Return the names of required settings that are unset or empty."""
    return [name for name in REQUIRED_SETTINGS if not config.get(name)]
