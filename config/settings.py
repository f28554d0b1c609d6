"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


PIPELINE_STAGES = ("analyze", "briefing")


class ServiceSettings(BaseSettings):
    """远程 Survey 服务配置"""
    base_url: str = Field(default="http://localhost:3000", description="Survey API 根地址")
    access_token: Optional[str] = Field(default=None, description="Bearer Token (由宿主应用提供)")
    request_timeout: float = Field(default=30.0, description="请求超时时间(秒)")
    upload_timeout: float = Field(default=60.0, description="上传超时时间(秒)")
    max_retries: int = Field(default=3, description="只读请求的最大尝试次数")
    retry_min_wait: float = Field(default=1.0, description="重试最小等待(秒)")
    retry_max_wait: float = Field(default=10.0, description="重试最大等待(秒)")

    class Config:
        env_prefix = "SURVEY_SERVICE_"


class SearchSettings(BaseSettings):
    """语义搜索配置"""
    limit: int = Field(default=20, description="最大返回结果数")
    threshold: float = Field(default=0.3, description="相似度阈值")
    default_space: str = Field(default="briefing", description="默认向量空间: briefing, full")

    class Config:
        env_prefix = "SURVEY_SEARCH_"

    @field_validator("default_space")
    @classmethod
    def _known_space(cls, value: str) -> str:
        text = str(value or "").strip().lower()
        if text not in {"briefing", "full"}:
            raise ValueError("default_space must be 'briefing' or 'full'")
        return text


class PipelineSettings(BaseSettings):
    """上传后自动流水线配置"""
    post_upload_stages: List[str] = Field(
        default_factory=lambda: ["analyze"],
        description="上传后自动执行的阶段, 可选 analyze, briefing",
    )

    class Config:
        env_prefix = "SURVEY_PIPELINE_"

    @field_validator("post_upload_stages")
    @classmethod
    def _known_stages(cls, value: List[str]) -> List[str]:
        stages = [str(item).strip().lower() for item in value or [] if str(item).strip()]
        unknown = [item for item in stages if item not in PIPELINE_STAGES]
        if unknown:
            raise ValueError(f"unsupported pipeline stages: {unknown}")
        return stages


class ControllerSettings(BaseSettings):
    """控制器行为配置"""
    abort_superseded_requests: bool = Field(
        default=True,
        description="被取代的请求是否主动中断底层传输",
    )

    class Config:
        env_prefix = "SURVEY_CONTROLLER_"


class LoggingSettings(BaseSettings):
    """日志配置"""
    level: str = Field(default="INFO", description="日志级别")
    file: Optional[str] = Field(default=None, description="日志文件名 (可选)")
    use_rich: bool = Field(default=True, description="是否使用 Rich 输出")

    class Config:
        env_prefix = "SURVEY_LOG_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            # 默认查找 config/.env
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            service=ServiceSettings(),
            search=SearchSettings(),
            pipeline=PipelineSettings(),
            controller=ControllerSettings(),
            logging=LoggingSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_service_settings() -> ServiceSettings:
    return get_settings().service
