from .health import health_bp
from .auth import auth_bp
from .projects import projects_bp
