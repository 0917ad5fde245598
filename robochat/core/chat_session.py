"""In-memory conversation with rollback on failed sends."""
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from robochat.core.retry import RetryPolicy


class ChatSession:
    """Ordered message log on top of RetryPolicy. Nothing is persisted."""

    def __init__(self, policy: RetryPolicy, **options):
        self.policy = policy
        # Default send options (model, temperature, max_tokens, retries)
        self.options = options
        self._messages: list[BaseMessage] = []

    def restore_from_history(self, turns: list[dict]) -> None:
        """
        Rebuild the context from a UI history. Only user and assistant turns can be
        reconstructed; any other role becomes assistant. Text is read from "content"
        or, for widget-shaped turns, "message".
        """
        self._messages = []
        for turn in turns:
            text = turn.get("content")
            if text is None:
                text = turn.get("message", "")
            if turn.get("role") == "user":
                self._messages.append(HumanMessage(content=text))
            else:
                self._messages.append(AIMessage(content=text))

    def add_user_message(self, content: str) -> None:
        self._messages.append(HumanMessage(content=content))

    def add_assistant_message(self, content: str) -> None:
        self._messages.append(AIMessage(content=content))

    def add_system_message(self, content: str) -> None:
        self._messages.append(SystemMessage(content=content))

    def send_message(self, content: str, **options) -> str:
        """Append the user message, ask the model and append its reply. On failure the user message is removed again."""
        self.add_user_message(content)
        try:
            reply = self.policy.send(self._messages, **{**self.options, **options})
        except Exception:
            self._messages.pop()
            raise
        self.add_assistant_message(reply)
        return reply

    def get_history(self) -> list[BaseMessage]:
        return [m.model_copy(deep=True) for m in self._messages]

    def clear_history(self) -> None:
        self._messages = []

    def get_last_message(self) -> BaseMessage | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)
