from .routes import public_api_bp

__all__ = ["public_api_bp"]
