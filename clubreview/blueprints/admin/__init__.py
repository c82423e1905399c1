from .routes import admin_api_bp

__all__ = ["admin_api_bp"]
