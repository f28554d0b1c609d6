"""
Utils Module
通用工具函数
"""
from .logger import setup_logger
from .exceptions import (
    SurveyLifecycleError,
    ConfigurationError,
    ValidationError,
    RemoteServiceError,
    BriefingConflictError,
    RequestSupersededError,
)

__all__ = [
    "setup_logger",
    "SurveyLifecycleError",
    "ConfigurationError",
    "ValidationError",
    "RemoteServiceError",
    "BriefingConflictError",
    "RequestSupersededError",
]
