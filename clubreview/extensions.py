from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from clubreview.security import AdminActionGuard

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()

# Per-IP limits for unauthenticated traffic; admin actions are limited
# per admin by the guard below.
limiter = Limiter(key_func=get_remote_address, default_limits=["300 per hour"])
admin_guard = AdminActionGuard()

__all__ = [
    "db",
    "migrate",
    "login_manager",
    "csrf",
    "limiter",
    "admin_guard",
]
