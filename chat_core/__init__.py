"""Chat Core 顶层包。

该包提供桌面聊天客户端的后端核心实现，
包括配置加载、领域模型、会话存储、Provider 适配、
补全网关以及供 UI 调用的命令接口。
"""

from chat_core.agents.gateway import CompletionGateway
from chat_core.config.settings import Settings, load_settings

__all__ = ["CompletionGateway", "Settings", "load_settings"]
