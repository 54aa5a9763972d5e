import pytest

from chat_core.agents.gateway import CompletionGateway
from chat_core.api import service
from chat_core.domain.conversation import DEFAULT_HINT
from chat_core.domain.exceptions import NotFoundError, ValidationError
from chat_core.domain.models import ChatChoice, ChatResult, Message
from chat_core.infrastructure.storage.memory_store import MemoryConversationStore


class SettingsStub:
    model = "gpt-3.5-turbo"
    temperature = 1.0
    stream = False


class EchoProvider:
    name = "echo"

    def chat(self, req):
        last = req.messages[-1].content
        return ChatResult(
            id="c1",
            object="chat.completion",
            choices=[ChatChoice(index=0, message=Message.assistant(f"echo: {last}"))],
        )

    def chat_stream(self, req):
        raise AssertionError("stream should not be used")


@pytest.fixture(autouse=True)
def gateway():
    gw = CompletionGateway(SettingsStub(), MemoryConversationStore(), EchoProvider())
    service.configure(gw)
    yield gw
    service.configure(None)


def test_start_and_get_conversation():
    cid = service.start_conversation()
    assert service.get_conversations() == [cid]
    assert service.get_conversation(cid) == [{"role": "system", "content": DEFAULT_HINT}]


def test_completion_round_trip():
    cid = service.start_conversation("be terse")
    msgs = service.get_conversation(cid) + [{"role": "user", "content": "ping"}]
    reply = service.completion(cid, msgs)
    assert reply == {"role": "assistant", "content": "echo: ping"}
    assert service.get_conversation(cid)[-1] == reply


def test_titles():
    cid = service.start_conversation()
    assert service.get_title(cid) == ""
    service.set_title(cid, "mine")
    assert service.get_title(cid) == "mine"
    service.set_title(cid, "renamed")
    assert service.get_title(cid) == "renamed"
    assert service.suggest_title(cid) == f"echo: {DEFAULT_HINT}"


def test_invalid_id():
    with pytest.raises(ValidationError):
        service.get_conversation("not-a-uuid")


def test_invalid_message_role():
    cid = service.start_conversation()
    with pytest.raises(ValidationError):
        service.completion(cid, [{"role": "robot", "content": "x"}])


def test_unknown_conversation():
    with pytest.raises(NotFoundError):
        service.get_conversation("00000000-0000-0000-0000-000000000000")


def test_list_prompts():
    prompts = service.list_prompts()
    assert prompts
    assert all(set(p) == {"act", "content"} and p["act"] and p["content"] for p in prompts)
