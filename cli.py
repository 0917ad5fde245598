"""
CLI: chat with the model from a terminal through ChatSession (same retry and trimming as the widget).

Usage:
  python cli.py                      # interactive, talks to the provider directly
  python cli.py "Hello there"        # single prompt
  ROBOCHAT_PROXY_URL=http://localhost:8000/api/chat python cli.py   # go through a running server
For the API, use: python run_api.py
"""
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

from robochat.core.chat_session import ChatSession
from robochat.core.config import get_settings
from robochat.core.errors import ChatApiError
from robochat.core.llm_client import ChatCompletionClient
from robochat.core.retry import RetryPolicy


def _build_session() -> ChatSession:
    settings = get_settings()
    proxy_url = os.getenv("ROBOCHAT_PROXY_URL", "").strip()
    if proxy_url:
        client = ChatCompletionClient(proxy_url, timeout=settings.llm_timeout_seconds)
    else:
        client = ChatCompletionClient.from_settings(settings)
    return ChatSession(RetryPolicy.from_settings(settings, client))


def main() -> int:
    logging.basicConfig(level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING").upper(), logging.WARNING))
    session = _build_session()

    if len(sys.argv) > 1:
        try:
            print(session.send_message(" ".join(sys.argv[1:])))
        except ChatApiError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    print("Type a message (/clear to reset, /quit to exit).")
    while True:
        try:
            text = input("\nYou: ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            return 0
        if not text:
            continue
        if text in ("/quit", "/exit"):
            return 0
        if text == "/clear":
            session.clear_history()
            print("History cleared.")
            continue
        try:
            print(f"\nBot: {session.send_message(text)}")
        except ChatApiError as e:
            print(f"Error: {e}")


if __name__ == "__main__":
    sys.exit(main())
