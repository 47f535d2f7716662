"""OpenProject API client and record projections."""

from .client import OpenProjectClient
from .lookup import IdResolver
from .models import RoadmapSummary, UserSummary, WorkPackageSummary

__all__ = [
    "OpenProjectClient",
    "IdResolver",
    "RoadmapSummary",
    "UserSummary",
    "WorkPackageSummary",
]
