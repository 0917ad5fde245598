"""
SubmissionSink: store a completed contact form, then notify the operator.
Storage and email are attempted independently; only storage decides success.
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable

from delivery.email import send_submission_email
from delivery.storage import FileSubmissionStore, SubmissionRecord, SupabaseSubmissionStore
from robochat.core.config import Settings
from robochat.core.contact_config import ContactConfig
from robochat.core.errors import PersistenceError
from robochat.core.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

Notifier = Callable[[SubmissionRecord], bool]


@dataclass
class SubmissionOutcome:
    saved: bool
    email_sent: bool
    location: str | None = None

    @property
    def success(self) -> bool:
        return self.saved

    @property
    def message(self) -> str:
        if not self.saved:
            return "Failed to save contact data"
        if self.email_sent:
            return "Data saved and email sent successfully"
        return "Data saved (email not configured or sending failed)"


class SubmissionSink:
    def __init__(self, store, notifier: Notifier | None = None):
        self.store = store
        self.notifier = notifier

    def submit(self, data: dict[str, str], source_ip: str | None = None) -> SubmissionOutcome:
        record = SubmissionRecord(data=dict(data), source_ip=source_ip)

        location = None
        try:
            location = self.store.save(record)
        except PersistenceError as e:
            logger.error("Failed to save contact data: %s", e)

        email_sent = False
        if self.notifier is not None:
            try:
                email_sent = bool(self.notifier(record))
            except Exception:
                logger.exception("Email notification failed")
        else:
            logger.warning("SMTP credentials not configured. Email not sent. Data saved to storage only.")

        return SubmissionOutcome(saved=location is not None, email_sent=email_sent, location=location)


def build_sink(settings: Settings, contact: ContactConfig) -> SubmissionSink:
    if settings.submission_store == "supabase":
        store = SupabaseSubmissionStore(get_supabase_client())
    else:
        store = FileSubmissionStore(settings.contact_data_dir)

    recipient = settings.contact_recipient_email or contact.target_email
    notifier = None
    if settings.email_enabled and recipient:
        notifier = partial(
            send_submission_email,
            labels=contact.labels(),
            recipient=recipient,
            subject=contact.email_subject,
        )
    return SubmissionSink(store, notifier)
