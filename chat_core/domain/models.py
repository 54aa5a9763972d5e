"""统一的对话与结果数据模型。

本模块定义了网关与 Provider 之间共享的标准数据结构：

- Message: 一条对话消息（system/user/assistant），不可变、按值比较。
- ChatRequest: 发给 chat completion 接口的完整请求体。
- ChatResult: 从响应 JSON 解析后的统一结果。
- ChatStreamChunk: 流式响应中的单个增量事件。

Provider 适配器只依赖这些模型，并负责在 API JSON 与模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, get_args


# 消息角色，与 chat completion API 的 role 字段一致
Role = Literal["system", "user", "assistant"]
KNOWN_ROLES = frozenset(get_args(Role))


@dataclass(frozen=True)
class Message:
    """一条对话消息，既可用于请求，也可用于响应。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """从 {role, content} 映射构造消息，字段缺失或角色未知时抛出 ValueError。"""

        if not isinstance(data, Mapping):
            raise ValueError(f"message must be a mapping, got {type(data).__name__}")
        role = data.get("role")
        content = data.get("content")
        if role not in KNOWN_ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        if not isinstance(content, str):
            raise ValueError("message content must be a string")
        return cls(role=role, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)


@dataclass
class ChatRequest:
    """一次完整的 chat completion 请求。"""

    model: str
    temperature: float
    stream: bool
    messages: List[Message]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "stream": self.stream,
            "messages": [m.to_dict() for m in self.messages],
        }


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息。"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatChoice:
    """单个候选回答（网关只使用 index=0 的一条）。"""

    index: int
    message: Message
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - id / object: 响应中的同名字段。
    - choices: 一个或多个候选回答。
    - usage: token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    id: str
    object: str
    choices: List[ChatChoice]
    usage: ChatUsage = field(default_factory=ChatUsage)
    raw: Optional[dict] = None


@dataclass
class ChatStreamChoice:
    """流式返回中的单个候选增量。"""

    index: int
    delta: str
    role: Optional[Role] = None
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamChunk:
    """流式对话的增量结果。

    每个事件由若干 choice 组成，choice.delta 代表本次新增的文本。
    """

    id: str
    choices: List[ChatStreamChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
