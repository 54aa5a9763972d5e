"""内存会话存储。

进程退出即丢失，主要用于测试和临时会话。每个会话 id 拥有独立的锁，
同一会话上的追加与整体替换串行执行，不同会话之间互不阻塞。
"""

import threading
from typing import Dict, List, Optional

from chat_core.domain.conversation import (
    ConversationId,
    ConversationStore,
    new_conversation_id,
    seed_message,
)
from chat_core.domain.exceptions import NotFoundError
from chat_core.domain.models import Message


class MemoryConversationStore(ConversationStore):
    def __init__(self):
        self._data: Dict[ConversationId, List[Message]] = {}
        self._titles: Dict[ConversationId, str] = {}
        self._locks: Dict[ConversationId, threading.Lock] = {}
        # 只保护 _locks 字典本身
        self._guard = threading.Lock()

    def _lock_for(self, conversation_id: ConversationId) -> threading.Lock:
        """写路径使用：按需创建该会话的锁。"""

        with self._guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = self._locks[conversation_id] = threading.Lock()
            return lock

    def _existing_lock(self, conversation_id: ConversationId) -> Optional[threading.Lock]:
        # 读路径不创建锁，未写入过的 id 不留下任何记录
        with self._guard:
            return self._locks.get(conversation_id)

    def start_conversation(self, hint: Optional[str] = None) -> ConversationId:
        cid = new_conversation_id()
        with self._lock_for(cid):
            self._data[cid] = [seed_message(hint)]
        return cid

    def store_message(self, conversation_id: ConversationId, message: Message) -> None:
        with self._lock_for(conversation_id):
            self._data.setdefault(conversation_id, []).append(message)

    def store_conversation(self, conversation_id: ConversationId, messages: List[Message]) -> None:
        with self._lock_for(conversation_id):
            self._data[conversation_id] = list(messages)

    def get_conversation(self, conversation_id: ConversationId) -> List[Message]:
        lock = self._existing_lock(conversation_id)
        msgs = None
        if lock is not None:
            with lock:
                msgs = self._data.get(conversation_id)
                if msgs is not None:
                    msgs = list(msgs)
        if msgs is None:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=f"conversation {conversation_id} not found")
        return msgs

    def get_conversations(self) -> List[ConversationId]:
        return list(self._data)

    def store_title(self, conversation_id: ConversationId, title: str) -> None:
        with self._lock_for(conversation_id):
            self._titles.setdefault(conversation_id, title)

    def set_title(self, conversation_id: ConversationId, title: str) -> None:
        with self._lock_for(conversation_id):
            self._titles[conversation_id] = title

    def get_title(self, conversation_id: ConversationId) -> Optional[str]:
        lock = self._existing_lock(conversation_id)
        if lock is None:
            return None
        with lock:
            return self._titles.get(conversation_id)
