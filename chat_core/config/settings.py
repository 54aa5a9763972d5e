"""配置管理模块。

配置来源（优先级从高到低）：
- 显式传入的关键字参数；
- 环境变量（前缀 OPENAI_，例如 OPENAI_API_KEY）；
- .env 文件；
- chatgpt.yaml 配置文件；
- 字段默认值。

配置只在启动时加载一次，之后以只读对象的形式注入各组件，
不再提供模块级的全局单例。
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_core.domain.exceptions import ConfigError


CONFIG_FILE_NAME = "chatgpt.yaml"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


def _config_candidates(config_dir: Optional[str | Path]) -> List[Path]:
    candidates: List[Path] = []
    if config_dir:
        candidates.append(Path(config_dir).expanduser() / CONFIG_FILE_NAME)
    explicit = os.getenv("CHATGPT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.append(Path.cwd() / CONFIG_FILE_NAME)
    return candidates


def _load_config_from_yaml(config_dir: Optional[str | Path] = None) -> Dict[str, Any]:
    """从 chatgpt.yaml 加载配置（若存在）。

    文件存在但无法解析、或顶层不是映射时直接抛出 ConfigError，
    进程不应带着损坏的配置启动。
    """

    seen: set[Path] = set()
    for path in _config_candidates(config_dir):
        if path in seen:
            continue
        seen.add(path)
        if not path.exists():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(code="CONFIG_ERROR", message=f"Failed to read config file {path}: {exc}")
        if not isinstance(data, dict):
            raise ConfigError(code="CONFIG_ERROR", message=f"Config file {path} is not a mapping")
        return data
    return {}


class Settings(BaseSettings):
    """聊天客户端配置。"""

    # ---- 补全请求 ----
    model: str = Field(default=DEFAULT_MODEL, description="chat completion 模型 ID")
    temperature: float = Field(default=1.0, ge=0.0, le=2.0, description="采样温度")
    stream: bool = Field(default=False, description="是否以流式方式请求")
    api_key: str = Field(default="", description="单个 API 密钥，非空时优先使用")
    api_keys: List[str] = Field(default_factory=list, description="API 密钥池，api_key 为空时随机选取")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="API 基础URL")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 存储与日志 ----
    storage_backend: Literal["disk", "memory"] = Field(default="disk", description="会话存储后端")
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("api_keys")
    @classmethod
    def drop_blank_keys(cls, v: List[str]) -> List[str]:
        return [k for k in v if k and k.strip()]


def load_settings(config_dir: Optional[str | Path] = None, **overrides: Any) -> Settings:
    """加载配置，失败时抛出 ConfigError。

    Args:
        config_dir: chatgpt.yaml 所在目录（可选）。
        **overrides: 显式覆盖的字段，优先级最高。
    """

    file_values = _load_config_from_yaml(config_dir)

    def yaml_source() -> Dict[str, Any]:
        return file_values

    class _Settings(Settings):
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls,
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ):
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                yaml_source,
                file_secret_settings,
            )

    try:
        return _Settings(**overrides)
    except PydanticValidationError as exc:
        raise ConfigError(code="CONFIG_ERROR", message=f"Invalid settings: {exc}")
