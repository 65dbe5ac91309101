from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_restx import Api
from flask import Blueprint

# One handle per collaborator, bound to the app in create_app
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

# Operational API (schema setup, admin promotion, diagnostics)
api_bp = Blueprint('api', __name__, url_prefix='/api')
api = Api(
    app=api_bp,
    version='1.0',
    title='QuizHub Setup API',
    description='Operational bootstrap endpoints for the QuizHub store',
    doc='/apidocs/',
    default='QuizHub',
    default_label='Setup endpoints'
)
