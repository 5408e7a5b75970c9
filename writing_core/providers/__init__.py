"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口与取消信号 (base)。
- 维护选择器与默认配置 (registry)。
- 三种协议共用的逐行流式解码 (streaming)。
- 各厂商的具体实现 (openai_client、gemini_client、ollama_client)。
"""

from typing import Mapping, Optional, Union

from writing_core.config.settings import Settings
from writing_core.domain.models import ProviderConfig
from writing_core.infrastructure.logging.logger import logger
from writing_core.providers.base import AIProvider, CancellationToken
from writing_core.providers.gemini_client import GeminiProvider
from writing_core.providers.ollama_client import DEFAULT_TIMEOUT as OLLAMA_TIMEOUT, OllamaProvider
from writing_core.providers.openai_client import OpenAICompatibleProvider
from writing_core.providers.registry import (
    FALLBACK_PROVIDER,
    GEMINI_DEFAULTS,
    OLLAMA_DEFAULTS,
    OPENAI_DEFAULTS,
    ProviderDefaults,
    resolve_selector,
)

ConfigLike = Union[ProviderConfig, Mapping[str, object]]


def _lookup_config(configs: Mapping[str, ConfigLike], defaults: ProviderDefaults) -> ProviderConfig:
    """按显示名、再按短别名查找配置，找不到时返回空配置。"""

    wanted = {defaults.selector.lower(), defaults.key}
    for name, raw in configs.items():
        if name.strip().lower() not in wanted:
            continue
        if isinstance(raw, ProviderConfig):
            return raw
        return ProviderConfig.from_mapping(raw)
    return ProviderConfig()


def create_provider(
    selector: Optional[str],
    configs: Optional[Mapping[str, ConfigLike]] = None,
    *,
    settings: Optional[Settings] = None,
) -> AIProvider:
    """根据选择器与各 Provider 的配置创建实例。

    缺失字段使用 registry 中的默认值；未识别的选择器回退到 Gemini，不报错。
    settings 只提供温度、超时等全局参数，不会重新读取磁盘。
    """

    configs = configs or {}
    defaults = resolve_selector(selector)
    if defaults is None:
        logger.warning(
            "provider.unknown_selector",
            extra={"extra": {"selector": selector, "fallback": FALLBACK_PROVIDER.key}},
        )
        defaults = FALLBACK_PROVIDER
    cfg = _lookup_config(configs, defaults)

    temperature = settings.temperature if settings is not None else defaults.temperature
    http_timeout = settings.http_timeout if settings is not None else 60.0

    if defaults is OPENAI_DEFAULTS:
        return OpenAICompatibleProvider(
            api_key=cfg.api_key,
            api_base=cfg.api_base or OPENAI_DEFAULTS.api_base,
            model_name=cfg.model_name or OPENAI_DEFAULTS.model_name,
            organisation=cfg.api_organisation,
            project=cfg.api_project,
            temperature=temperature,
            timeout=http_timeout,
        )
    if defaults is OLLAMA_DEFAULTS:
        return OllamaProvider(
            api_base=cfg.api_base or OLLAMA_DEFAULTS.api_base,
            model_name=cfg.model_name or OLLAMA_DEFAULTS.model_name,
            keep_alive=cfg.keep_alive or OLLAMA_DEFAULTS.keep_alive,
            timeout=settings.ollama_timeout if settings is not None else OLLAMA_TIMEOUT,
        )
    return GeminiProvider(
        api_key=cfg.api_key,
        api_base=cfg.api_base,
        model_name=cfg.model_name or GEMINI_DEFAULTS.model_name,
        temperature=temperature,
        timeout=http_timeout,
    )


def create_provider_from_settings(cfg: Settings) -> AIProvider:
    """用一份显式的 Settings 值创建当前选中的 Provider。"""

    return create_provider(cfg.provider, cfg.provider_configs(), settings=cfg)


__all__ = [
    "AIProvider",
    "CancellationToken",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "create_provider",
    "create_provider_from_settings",
]
