from quizhub.routes.auth import auth_bp
from quizhub.routes.main import main_bp
from quizhub.routes.admin import admin_bp
from quizhub.routes.user import user_bp

__all__ = ['auth_bp', 'main_bp', 'admin_bp', 'user_bp']
