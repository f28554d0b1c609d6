"""
Custom Exceptions
自定义异常类
"""
from typing import Optional


class SurveyLifecycleError(Exception):
    """Survey 生命周期控制器基础异常类"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SurveyLifecycleError):
    """配置错误"""
    pass


class ValidationError(SurveyLifecycleError):
    """输入校验失败 (不会发起网络请求)"""
    pass


class RemoteServiceError(SurveyLifecycleError):
    """远程服务返回非成功响应或传输失败"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, kwargs)
        self.status_code = status_code
        self.endpoint = endpoint


class BriefingConflictError(RemoteServiceError):
    """Briefing 已存在, 需要用户确认后以 force 覆盖"""

    def __init__(
        self,
        message: str = "Briefing already exists",
        existing_briefing: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=409, **kwargs)
        self.existing_briefing = existing_briefing


class RequestSupersededError(SurveyLifecycleError):
    """同类请求已被更新的请求取代, 结果应被静默丢弃"""

    def __init__(self, request_class: str, generation: int):
        super().__init__(f"{request_class} request #{generation} superseded")
        self.request_class = request_class
        self.generation = generation
