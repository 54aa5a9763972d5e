from uuid import uuid4

import pytest

from chat_core.agents.gateway import SUMMARIZER_PROMPT, CompletionGateway
from chat_core.domain.exceptions import NetworkError, ParseError, StorageError
from chat_core.domain.models import (
    ChatChoice,
    ChatResult,
    ChatStreamChoice,
    ChatStreamChunk,
    Message,
)
from chat_core.infrastructure.storage.memory_store import MemoryConversationStore


class SettingsStub:
    model = "gpt-3.5-turbo"
    temperature = 0.5
    stream = False


class FakeProvider:
    name = "fake"

    def __init__(self, reply="hello", error=None, chunks=None):
        self.reply = reply
        self.error = error
        self.chunks = chunks or []
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        if self.error:
            raise self.error
        return ChatResult(
            id="c1",
            object="chat.completion",
            choices=[ChatChoice(index=0, message=Message.assistant(self.reply), finish_reason="stop")],
        )

    def chat_stream(self, req):
        self.requests.append(req)
        return iter(self.chunks)


def _gateway(provider, store=None, settings=None):
    return CompletionGateway(settings or SettingsStub(), store or MemoryConversationStore(), provider)


def test_generate_completion_builds_request():
    provider = FakeProvider()
    reply = _gateway(provider).generate_completion([Message.user("hi")])
    assert reply == Message.assistant("hello")
    req = provider.requests[0]
    assert req.to_payload() == {
        "model": "gpt-3.5-turbo",
        "temperature": 0.5,
        "stream": False,
        "messages": [{"role": "user", "content": "hi"}],
    }


def test_chat_completion_appends_reply():
    store = MemoryConversationStore()
    gw = _gateway(FakeProvider(reply="answer"), store)
    cid = gw.start_conversation()
    history = gw.get_conversation(cid) + [Message.user("question")]
    reply = gw.chat_completion(cid, history)
    assert reply == Message.assistant("answer")
    stored = store.get_conversation(cid)
    assert stored == history + [reply]
    assert len(stored) == len(history) + 1


def test_chat_completion_failure_leaves_conversation():
    store = MemoryConversationStore()
    gw = _gateway(FakeProvider(error=NetworkError(code="NETWORK_ERROR", message="request error: boom")), store)
    cid = gw.start_conversation()
    before = store.get_conversation(cid)
    with pytest.raises(NetworkError):
        gw.chat_completion(cid, before + [Message.user("q")])
    assert store.get_conversation(cid) == before


def test_chat_completion_storage_failure_propagates():
    class BrokenStore(MemoryConversationStore):
        def store_conversation(self, conversation_id, messages):
            raise StorageError(code="STORE_WRITE_ERROR", message="disk full")

    gw = _gateway(FakeProvider(), BrokenStore())
    with pytest.raises(StorageError):
        gw.chat_completion(uuid4(), [Message.user("q")])


def test_suggest_title_uses_first_six_messages():
    store = MemoryConversationStore()
    provider = FakeProvider(reply="  A Title\n")
    gw = _gateway(provider, store)
    cid = uuid4()
    store.store_conversation(cid, [Message.user(f"m{i}") for i in range(8)])
    title = gw.suggest_title(cid)
    assert title == "  A Title\n"
    assert store.get_title(cid) is None
    sent = provider.requests[0].messages
    assert sent == [Message.system(SUMMARIZER_PROMPT), Message.user("m0\nm1\nm2\nm3\nm4\nm5")]


def test_generate_completion_stream_assembles_message():
    settings = SettingsStub()
    settings.stream = True
    chunks = [
        ChatStreamChunk(id="c", choices=[ChatStreamChoice(index=0, delta="", role="assistant")]),
        ChatStreamChunk(id="c", choices=[ChatStreamChoice(index=0, delta="Hel")]),
        ChatStreamChunk(id="c", choices=[ChatStreamChoice(index=0, delta="lo", finish_reason="stop")]),
    ]
    provider = FakeProvider(chunks=chunks)
    reply = _gateway(provider, settings=settings).generate_completion([Message.user("hi")])
    assert reply == Message.assistant("Hello")
    assert provider.requests[0].stream is True


def test_title_passthrough():
    gw = _gateway(FakeProvider())
    cid = gw.start_conversation("be brief")
    gw.store_title(cid, "first")
    gw.store_title(cid, "second")
    assert gw.get_title(cid) == "first"
    gw.set_title(cid, "manual")
    assert gw.get_title(cid) == "manual"
    assert gw.get_conversations() == [cid]


def test_generate_completion_empty_stream_is_parse_error():
    settings = SettingsStub()
    settings.stream = True
    provider = FakeProvider(chunks=[ChatStreamChunk(id="c", choices=[])])
    with pytest.raises(ParseError):
        _gateway(provider, settings=settings).generate_completion([Message.user("hi")])
