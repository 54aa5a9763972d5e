from typing import List, Optional, Protocol
from uuid import UUID, uuid4

from .models import Message


ConversationId = UUID

DEFAULT_HINT = "act as a general chat."


def new_conversation_id() -> ConversationId:
    return uuid4()


def seed_message(hint: Optional[str]) -> Message:
    """新会话的首条 system 消息。"""

    return Message.system(DEFAULT_HINT if hint is None else hint)


class ConversationStore(Protocol):
    """会话存储协议，内存与磁盘两种后端均实现此接口。"""

    def start_conversation(self, hint: Optional[str] = None) -> ConversationId:
        ...

    def store_message(self, conversation_id: ConversationId, message: Message) -> None:
        ...

    def store_conversation(self, conversation_id: ConversationId, messages: List[Message]) -> None:
        ...

    def get_conversation(self, conversation_id: ConversationId) -> List[Message]:
        ...

    def get_conversations(self) -> List[ConversationId]:
        ...

    def store_title(self, conversation_id: ConversationId, title: str) -> None:
        """仅当尚无标题时写入（先写者胜）。"""

        ...

    def set_title(self, conversation_id: ConversationId, title: str) -> None:
        """无条件覆盖标题，供用户手动改名。"""

        ...

    def get_title(self, conversation_id: ConversationId) -> Optional[str]:
        ...
