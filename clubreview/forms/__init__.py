from .application import ClubApplicationForm

__all__ = ["ClubApplicationForm"]
