"""Provider 选择器与默认配置。

本模块把“设置文件里的选择器”与“具体 Provider 实现的默认参数”解耦：

- selector：设置文件中的显示名，例如 "Gemini (Recommended)"，也接受短别名 "gemini"。
- ProviderDefaults：该 Provider 在配置缺失时使用的默认模型、地址等。

工厂函数只依赖这里的集中配置，便于后续升级默认模型。"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProviderDefaults:
    """单个 Provider 的默认参数。"""

    key: str
    selector: str
    model_name: str
    api_base: Optional[str] = None
    keep_alive: Optional[str] = None
    temperature: float = 0.7
    max_output_tokens: Optional[int] = None


GEMINI_DEFAULTS = ProviderDefaults(
    key="gemini",
    selector="Gemini (Recommended)",
    model_name="gemini-2.0-flash",
    api_base="https://generativelanguage.googleapis.com/v1beta",
    max_output_tokens=8192,
)

OPENAI_DEFAULTS = ProviderDefaults(
    key="openai",
    selector="OpenAI Compatible (For Experts)",
    model_name="gpt-4o-mini",
    api_base="https://api.openai.com/v1",
)

# Ollama 本地服务：无需 API Key，keep_alive 单位为分钟
OLLAMA_DEFAULTS = ProviderDefaults(
    key="ollama",
    selector="Ollama (For Experts)",
    model_name="llama3.1:8b",
    api_base="http://localhost:11434",
    keep_alive="15",
)


PROVIDER_REGISTRY: Mapping[str, ProviderDefaults] = {
    "gemini": GEMINI_DEFAULTS,
    "openai": OPENAI_DEFAULTS,
    "ollama": OLLAMA_DEFAULTS,
}

# 未识别的选择器回退到云端默认 Provider
FALLBACK_PROVIDER = GEMINI_DEFAULTS


def resolve_selector(selector: Optional[str]) -> Optional[ProviderDefaults]:
    """根据选择器（显示名或短别名）查找默认配置，名称不区分大小写。"""

    key = (selector or "").strip().lower()
    if not key:
        return None
    for cfg in PROVIDER_REGISTRY.values():
        if key in (cfg.key, cfg.selector.lower()):
            return cfg
    return None
