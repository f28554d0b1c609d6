"""Remote service boundary for the survey API."""

from .base import AssetSource, BaseSurveyService
from .client import SurveyServiceClient

__all__ = [
    "AssetSource",
    "BaseSurveyService",
    "SurveyServiceClient",
]
