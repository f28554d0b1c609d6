"""
Configuration Management Module
统一配置管理，服务地址与控制器行为解耦
"""
from .settings import (
    PIPELINE_STAGES,
    ControllerSettings,
    LoggingSettings,
    PipelineSettings,
    SearchSettings,
    ServiceSettings,
    Settings,
    get_settings,
    get_service_settings,
)

__all__ = [
    "PIPELINE_STAGES",
    "ControllerSettings",
    "LoggingSettings",
    "PipelineSettings",
    "SearchSettings",
    "ServiceSettings",
    "Settings",
    "get_settings",
    "get_service_settings",
]
