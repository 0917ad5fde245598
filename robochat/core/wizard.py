"""
Contact form wizard: collects the configured fields one question at a time.

Each call to ContactWizard.handle() is one transition for one session:
  start/reset -> greet and ask for the first field
  reply       -> validate, store, then ask for the next field or finish
The model is only used to phrase questions; every phrase has a static fallback.

Sessions live in process memory (WizardSessionStore). Transitions on the same
session id are serialized with a per-session lock, and SessionReaper expires
idle sessions in the background without touching sessions that are in use.
"""
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from robochat.core.chat_session import ChatSession
from robochat.core.contact_config import ContactConfig, FieldSpec
from robochat.core.errors import ChatApiError, FieldValidationError
from robochat.core.retry import RetryPolicy

logger = logging.getLogger(__name__)

RESET = "reset"
SESSION_TTL_SECONDS = 3600.0
SWEEP_INTERVAL_SECONDS = 60.0
FOLLOWUP_SYSTEM_PROMPT = "You are a professional customer service bot."


def new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class WizardSession:
    session_id: str
    step: int = 0
    collected_data: dict[str, str] = field(default_factory=dict)
    # {role, content} turns, user and assistant only
    history: list[dict] = field(default_factory=list)
    created: float = 0.0
    last_active: float = 0.0
    client_ip: str | None = None


@dataclass
class WizardReply:
    reply: str
    session_id: str | None = None
    field: str | None = None
    progress: tuple[int, int] | None = None
    finished: bool = False
    error: bool = False

    def to_dict(self) -> dict:
        """Widget response shape: {reply, sessionId?, field?, progress?, finished?, error?}."""
        out: dict = {"reply": self.reply}
        if self.finished:
            out["finished"] = True
            out["sessionId"] = None
        elif self.session_id:
            out["sessionId"] = self.session_id
        if self.field:
            out["field"] = self.field
        if self.progress:
            out["progress"] = {"current": self.progress[0], "total": self.progress[1]}
        if self.error:
            out["error"] = True
        return out


class WizardSessionStore:
    """Keyed in-memory session map with one lock per session id. Single process only."""

    def __init__(self, ttl_seconds: float = SESSION_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: dict[str, WizardSession] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """Hold the session's lock. A lock dropped by delete/purge while we waited is replaced."""
        while True:
            with self._guard:
                lock = self._locks.get(session_id)
                if lock is None:
                    lock = self._locks[session_id] = threading.Lock()
            lock.acquire()
            with self._guard:
                current = self._locks.get(session_id)
            if current is lock:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def get(self, session_id: str) -> WizardSession | None:
        with self._guard:
            return self._sessions.get(session_id)

    def put(self, session: WizardSession) -> None:
        with self._guard:
            self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> None:
        """Remove a session. Call while holding its lock."""
        with self._guard:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)

    def purge_expired(self) -> int:
        """Drop sessions idle longer than ttl_seconds, skipping any that are mid-transition."""
        now = self.clock()
        removed = 0
        with self._guard:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_active <= self.ttl_seconds:
                    continue
                lock = self._locks.get(session_id)
                if lock is not None and not lock.acquire(blocking=False):
                    continue
                try:
                    del self._sessions[session_id]
                    self._locks.pop(session_id, None)
                    removed += 1
                finally:
                    if lock is not None:
                        lock.release()
            # Locks left behind by transitions that never stored a session
            for session_id, lock in list(self._locks.items()):
                if session_id in self._sessions or not lock.acquire(blocking=False):
                    continue
                try:
                    del self._locks[session_id]
                finally:
                    lock.release()
        return removed

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)


class SessionReaper:
    """Daemon thread that calls store.purge_expired() every interval seconds."""

    def __init__(self, store: WizardSessionStore, interval: float = SWEEP_INTERVAL_SECONDS):
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="wizard-session-reaper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                removed = self.store.purge_expired()
            except Exception:
                logger.exception("Session sweep failed")
                continue
            if removed:
                logger.info("Expired %d idle contact form session(s)", removed)


class ContactWizard:
    def __init__(
        self,
        contact: ContactConfig,
        sink,
        policy: RetryPolicy | None = None,
        store: WizardSessionStore | None = None,
        max_tokens: int = 150,
    ):
        self.contact = contact
        self.fields: list[FieldSpec] = contact.fields()
        if not self.fields:
            raise ValueError("Contact form needs at least one field")
        self.sink = sink
        self.policy = policy
        self.store = store or WizardSessionStore()
        self.max_tokens = max_tokens

    @property
    def total(self) -> int:
        return len(self.fields)

    def handle(
        self,
        session_id: str | None,
        action: str | None = None,
        message: str | None = None,
        client_ip: str | None = None,
    ) -> WizardReply:
        """Run one transition. A missing or unknown session id starts a new conversation."""
        session_id = session_id or new_session_id()
        if message is not None:
            message = message.strip() or None

        with self.store.lock(session_id):
            session = None if action == RESET else self.store.get(session_id)
            if session is None:
                logger.info("[Session %s] Starting contact form%s", session_id, " (reset)" if action == RESET else "")
                return self._start(session_id, client_ip)
            session.last_active = self.store.clock()
            return self._advance(session, message)

    # ---- transitions ----

    def _start(self, session_id: str, client_ip: str | None) -> WizardReply:
        first = self.fields[0]
        greeting = self._phrase(
            self.contact.system_prompt,
            [],
            f"Start a friendly conversation and ask for the user's {first.label.lower()}.",
        )
        reply = greeting or f"{self.contact.greeting} {first.prompt}"
        now = self.store.clock()
        self.store.put(
            WizardSession(
                session_id=session_id,
                history=[{"role": "assistant", "content": reply}],
                created=now,
                last_active=now,
                client_ip=client_ip,
            )
        )
        return WizardReply(reply, session_id=session_id, field=first.name, progress=(1, self.total))

    def _advance(self, session: WizardSession, message: str | None) -> WizardReply:
        current = self.fields[session.step]
        progress = (session.step + 1, self.total)

        if message is None:
            # Nothing to store; ask the same question again
            return WizardReply(current.prompt, session_id=session.session_id, field=current.name, progress=progress)

        try:
            current.check(message)
        except FieldValidationError as e:
            logger.info("[Session %s] Validation failed for %s: %s", session.session_id, e.field, e.reason)
            return WizardReply(
                f"{e.reason} {current.prompt}",
                session_id=session.session_id,
                field=current.name,
                progress=progress,
                error=True,
            )

        session.collected_data[current.name] = message
        session.history.append({"role": "user", "content": message})
        logger.info("[Session %s] Saved %s", session.session_id, current.name)

        if session.step >= self.total - 1:
            return self._finish(session)

        session.step += 1
        nxt = self.fields[session.step]
        question = self._phrase(
            FOLLOWUP_SYSTEM_PROMPT,
            session.history,
            f"The user just provided their {current.label}: {message}. Now ask in a friendly way for their {nxt.label}.",
        )
        reply = question or nxt.prompt
        session.history.append({"role": "assistant", "content": reply})
        return WizardReply(
            reply,
            session_id=session.session_id,
            field=nxt.name,
            progress=(session.step + 1, self.total),
        )

    def _finish(self, session: WizardSession) -> WizardReply:
        logger.info("[Session %s] All information collected", session.session_id)
        outcome = self.sink.submit(session.collected_data, source_ip=session.client_ip)
        if not outcome.saved:
            # Keep the session on the last step; resending the last answer retries the submission
            logger.error("[Session %s] Submission could not be stored", session.session_id)
            return WizardReply(self.contact.error_message, session_id=session.session_id, error=True)
        if not outcome.email_sent:
            logger.warning("[Session %s] Submission stored but operator email was not sent", session.session_id)

        thanks = self._phrase(
            FOLLOWUP_SYSTEM_PROMPT,
            session.history,
            "The user has provided all information. Thank them warmly.",
        )
        self.store.delete(session.session_id)
        logger.info("[Session %s] Processing complete, session deleted", session.session_id)
        return WizardReply(thanks or self.contact.completion_message, finished=True)

    def _phrase(self, system_prompt: str, history: list[dict], instruction: str) -> str | None:
        """Ask the model for one line of dialogue. None means: use the static text."""
        if self.policy is None:
            return None
        chat = ChatSession(self.policy, max_tokens=self.max_tokens)
        chat.add_system_message(system_prompt)
        for turn in history:
            if turn["role"] == "user":
                chat.add_user_message(turn["content"])
            else:
                chat.add_assistant_message(turn["content"])
        try:
            reply = chat.send_message(instruction)
        except ChatApiError as e:
            logger.warning("AI reply unavailable, using static text: %s", e)
            return None
        return reply.strip() or None
