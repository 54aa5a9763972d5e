"""对外命令接口模块。

提供给 UI 层调用的简化函数接口，参数与返回值均为可 JSON 序列化的基本类型。
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from chat_core.agents.gateway import CompletionGateway
from chat_core.config.settings import Settings, load_settings
from chat_core.domain.conversation import ConversationId
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger, setup_logger
from chat_core.infrastructure.storage import create_store
from chat_core.prompts import load_prompts
from chat_core.providers import create_provider


_gateway: Optional[CompletionGateway] = None


def build_gateway(settings: Settings) -> CompletionGateway:
    """按配置组装存储、Provider 与网关。"""

    setup_logger(settings.log_dir, settings.log_redact_content)
    return CompletionGateway(
        settings=settings,
        store=create_store(settings),
        provider_client=create_provider(settings),
    )


def configure(gateway: Optional[CompletionGateway]) -> None:
    """替换默认网关实例；传 None 时下次调用重新按配置构建。"""

    global _gateway
    _gateway = gateway


def get_default_gateway() -> CompletionGateway:
    """获取默认网关实例（首次调用时加载配置）。"""

    global _gateway
    if _gateway is None:
        _gateway = build_gateway(load_settings())
    return _gateway


def _parse_id(conversation_id: str) -> ConversationId:
    try:
        return UUID(str(conversation_id))
    except ValueError:
        raise ValidationError(code="INVALID_ARGUMENT", message=f"invalid conversation id: {conversation_id!r}")


def _parse_messages(messages: List[Dict[str, Any]]) -> List[Message]:
    try:
        return [Message.from_dict(m) for m in messages]
    except ValueError as e:
        raise ValidationError(code="INVALID_ARGUMENT", message=str(e))


def start_conversation(hint: Optional[str] = None) -> str:
    return str(get_default_gateway().start_conversation(hint))


def get_conversations() -> List[str]:
    return [str(cid) for cid in get_default_gateway().get_conversations()]


def get_conversation(conversation_id: str) -> List[Dict[str, str]]:
    msgs = get_default_gateway().get_conversation(_parse_id(conversation_id))
    return [m.to_dict() for m in msgs]


def get_title(conversation_id: str) -> str:
    """获取会话标题，无标题时返回空字符串。"""

    return get_default_gateway().get_title(_parse_id(conversation_id)) or ""


def set_title(conversation_id: str, title: str) -> None:
    get_default_gateway().set_title(_parse_id(conversation_id), title)


def suggest_title(conversation_id: str) -> str:
    cid = _parse_id(conversation_id)
    try:
        return get_default_gateway().suggest_title(cid)
    except Exception as e:
        logger.error(f"Suggest title failed: {e}", extra={"extra": {
            "conversation_id": conversation_id,
            "error": str(e),
        }})
        raise


def completion(conversation_id: str, messages: List[Dict[str, Any]]) -> Dict[str, str]:
    """补全并保存会话，返回助手消息。

    Args:
        conversation_id: 会话ID
        messages: 完整的消息列表（含本轮用户输入）

    Returns:
        {role, content} 形式的助手消息

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    cid = _parse_id(conversation_id)
    msgs = _parse_messages(messages)
    try:
        reply = get_default_gateway().chat_completion(cid, msgs)
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "conversation_id": conversation_id,
            "error": str(e),
        }})
        raise
    return reply.to_dict()


def list_prompts() -> List[Dict[str, str]]:
    """内置提示词预设列表。"""

    return [p.to_dict() for p in load_prompts()]
