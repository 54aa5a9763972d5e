"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 提供具体实现 (openai_client)，以及 API 密钥选择逻辑。
"""

import random
from typing import Optional

from chat_core.config.settings import Settings
from chat_core.providers.base import ProviderClient
from chat_core.providers.openai_client import OpenAIClient, pick_api_key


def create_provider(cfg: Settings, rng: Optional[random.Random] = None) -> ProviderClient:
    """根据配置创建 Provider 实例。"""

    return OpenAIClient(cfg, rng=rng)


__all__ = ["create_provider", "OpenAIClient", "ProviderClient", "pick_api_key"]
