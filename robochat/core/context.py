"""
Conversation context helpers: wire conversion, the language instruction and context trimming.

Messages are kept as LangChain message objects inside the app and converted to
{role, content} dicts only when they go over the wire.
"""
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

DEFAULT_CONTEXT_LIMIT = 40

# Substring that marks the language instruction as already present
LANGUAGE_MARKER = "same language"
LANGUAGE_INSTRUCTION = (
    "Always respond in the same language as the user's message. "
    "If the user writes in Chinese, respond in Chinese. If the user writes in English, respond in English. "
    "Follow this rule strictly for every reply."
)

# Role names used by the widget / OpenAI wire format -> LangChain message class
_ROLE_TO_MESSAGE = {
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
    "system": SystemMessage,
}

_TYPE_TO_ROLE = {"human": "user", "ai": "assistant", "system": "system"}


def role_of(message: BaseMessage) -> str:
    return _TYPE_TO_ROLE.get(message.type, message.type)


def is_system(message: BaseMessage) -> bool:
    return isinstance(message, SystemMessage)


def message_for_role(role: str, content: str) -> BaseMessage:
    cls = _ROLE_TO_MESSAGE.get((role or "").lower())
    if cls is None:
        raise ValueError(f"Unsupported message role: {role!r}")
    return cls(content=content)


def from_wire(items: list[dict]) -> list[BaseMessage]:
    """[{role, content}, ...] -> LangChain messages. Raises ValueError on unknown roles or missing content."""
    out = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            raise ValueError(f"Message at index {i} needs a string 'content'")
        out.append(message_for_role(item.get("role", ""), item["content"]))
    return out


def to_wire(messages: list[BaseMessage]) -> list[dict]:
    return [{"role": role_of(m), "content": m.content} for m in messages]


def ensure_language_instruction(messages: list[BaseMessage]) -> list[BaseMessage]:
    """Prepend the language instruction unless a system message already carries it."""
    has_instruction = any(
        is_system(m) and LANGUAGE_MARKER in str(m.content) for m in messages
    )
    if has_instruction:
        return list(messages)
    return [SystemMessage(content=LANGUAGE_INSTRUCTION), *messages]


def trim_messages(messages: list, limit: int = DEFAULT_CONTEXT_LIMIT) -> list:
    """
    Keep every system message plus the last `limit` non-system messages, both in original order.
    Works on LangChain messages and on {role, content} dicts.
    """
    if len(messages) <= limit:
        return list(messages)
    system_msgs = [m for m in messages if _is_system_any(m)]
    non_system = [m for m in messages if not _is_system_any(m)]
    return system_msgs + (non_system[-limit:] if limit > 0 else [])


def _is_system_any(message) -> bool:
    if isinstance(message, dict):
        return message.get("role") == "system"
    return is_system(message)
