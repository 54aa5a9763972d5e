"""补全网关核心模块。

把有序消息序列转换为一次 chat completion 调用，并在 chat 场景下
把助手回复写回会话存储。
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from chat_core.config.settings import Settings
from chat_core.domain.conversation import ConversationId, ConversationStore
from chat_core.domain.exceptions import ParseError
from chat_core.domain.models import ChatRequest, Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ProviderClient


SUMMARIZER_PROMPT = "Act as a summarizer and summarize this dialogue"
TITLE_CONTEXT_MESSAGES = 6


class CompletionGateway:
    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        provider_client: ProviderClient,
    ):
        self._settings = settings
        self._store = store
        self._provider_client = provider_client

    @property
    def store(self) -> ConversationStore:
        return self._store

    # ---- 补全 ----

    def generate_completion(self, messages: Sequence[Message]) -> Message:
        """发起一次补全调用，返回第一个候选回答。"""

        req = ChatRequest(
            model=self._settings.model,
            temperature=self._settings.temperature,
            stream=self._settings.stream,
            messages=list(messages),
        )
        start_time = time.time()
        if req.stream:
            reply = self._collect_stream(req)
        else:
            result = self._provider_client.chat(req)
            reply = result.choices[0].message
        self._log(
            logging.INFO,
            "completion.done",
            {"model": req.model, "stream": req.stream},
            messages=len(req.messages),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return reply

    def chat_completion(self, conversation_id: ConversationId, messages: Sequence[Message]) -> Message:
        """补全并用 messages + 回复整体覆盖会话。

        补全失败时会话保持不变；写入失败同样向上抛出。
        """

        reply = self.generate_completion(messages)
        updated = list(messages)
        updated.append(reply)
        self._store.store_conversation(conversation_id, updated)
        return reply

    def suggest_title(self, conversation_id: ConversationId) -> str:
        """根据前几条消息生成标题建议，不做持久化。"""

        head = self._store.get_conversation(conversation_id)[:TITLE_CONTEXT_MESSAGES]
        dialogue = "\n".join(m.content for m in head)
        reply = self.generate_completion([Message.system(SUMMARIZER_PROMPT), Message.user(dialogue)])
        return reply.content

    def _collect_stream(self, req: ChatRequest) -> Message:
        role = None
        parts: List[str] = []
        for chunk in self._provider_client.chat_stream(req):
            for choice in chunk.choices:
                if choice.index != 0:
                    continue
                if role is None and choice.role:
                    role = choice.role
                parts.append(choice.delta)
        if role is None and not parts:
            raise ParseError(code="PARSE_ERROR", message="stream ended without any choice")
        return Message(role=role or "assistant", content="".join(parts))

    # ---- 存储透传 ----

    def start_conversation(self, hint: Optional[str] = None) -> ConversationId:
        cid = self._store.start_conversation(hint)
        self._log(logging.INFO, "Created new conversation", {"conversation_id": str(cid)})
        return cid

    def get_conversation(self, conversation_id: ConversationId) -> List[Message]:
        return self._store.get_conversation(conversation_id)

    def get_conversations(self) -> List[ConversationId]:
        return self._store.get_conversations()

    def get_title(self, conversation_id: ConversationId) -> Optional[str]:
        return self._store.get_title(conversation_id)

    def store_title(self, conversation_id: ConversationId, title: str) -> None:
        self._store.store_title(conversation_id, title)

    def set_title(self, conversation_id: ConversationId, title: str) -> None:
        self._store.set_title(conversation_id, title)

    def _log(self, level: int, message: str, ctx: Dict[str, Any], **extra: Any) -> None:
        payload = dict(ctx)
        payload.update(extra)
        logger.log(level, message, extra={"extra": payload})
