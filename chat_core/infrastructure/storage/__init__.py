"""会话存储后端。

- memory_store: 进程内的易失存储。
- kv_store: 基于嵌入式键值库的持久化存储。

具体后端由配置 storage_backend 在构造时选择。
"""

from chat_core.config.settings import Settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import ConfigError
from chat_core.infrastructure.storage.kv_store import KVConversationStore
from chat_core.infrastructure.storage.memory_store import MemoryConversationStore


def create_store(settings: Settings) -> ConversationStore:
    """根据配置创建会话存储实例。"""

    backend = (getattr(settings, "storage_backend", "disk") or "disk").lower()
    if backend == "memory":
        return MemoryConversationStore()
    if backend == "disk":
        return KVConversationStore(settings.storage_root)
    raise ConfigError(code="CONFIG_ERROR", message=f"Unknown storage backend: {backend!r}")


__all__ = ["create_store", "KVConversationStore", "MemoryConversationStore"]
