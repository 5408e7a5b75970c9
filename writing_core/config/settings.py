"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

设置文件沿用桌面端 settings.json 的结构：

    provider: "Gemini (Recommended)"
    providers:
      "Gemini (Recommended)":
        api_key: "..."
        model_name: "gemini-2.0-flash"
      "Ollama (For Experts)":
        api_base: "http://localhost:11434"
        keep_alive: 15
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from writing_core.domain.models import ProviderConfig


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("WRITING_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """写作助手配置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    provider: str = Field(
        default="Gemini (Recommended)",
        description="当前使用的 Provider 选择器，例如 Gemini (Recommended)、openai、ollama",
    )
    providers: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="按选择器分组的连接参数：api_key/api_base/model_name/api_organisation/api_project/keep_alive",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")
    http_timeout: float = Field(default=60.0, ge=1.0, description="云端 Provider 的 HTTP 超时时间（秒）")
    ollama_timeout: float = Field(
        default=600.0,
        ge=1.0,
        description="Ollama 超时时间（秒），首次加载模型可能需要数分钟",
    )

    # ---- 会话 ----
    max_conversation_messages: int = Field(default=50, ge=1, description="单个会话保留的最大消息数")
    actions: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="写作动作列表：name/prefix/instruction/open_in_window",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="WRITING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("providers", mode="before")
    @classmethod
    def validate_providers(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v

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
            cls._config_source,
            file_secret_settings,
        )

    def provider_configs(self) -> Dict[str, ProviderConfig]:
        """把 providers 字段转换为只读的 ProviderConfig 映射。"""

        return {name: ProviderConfig.from_mapping(raw) for name, raw in self.providers.items()}


settings = Settings()
