"""Client-side access to the admin review API with optimistic caching."""

from .api import AdminApiClient, ApiResponse
from .cache import ClubApprovalKeys, QueryCache
from .optimistic import MutationOutcome, OptimisticMutation, ReviewMutations

__all__ = [
    "AdminApiClient",
    "ApiResponse",
    "ClubApprovalKeys",
    "QueryCache",
    "MutationOutcome",
    "OptimisticMutation",
    "ReviewMutations",
]
