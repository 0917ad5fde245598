"""Wires settings into the long-lived objects the routes use."""
import logging
from dataclasses import dataclass

from delivery.sink import SubmissionSink, build_sink
from robochat.core.config import Settings
from robochat.core.contact_config import ContactConfig, load_contact_config
from robochat.core.llm_client import ChatCompletionClient
from robochat.core.retry import RetryPolicy
from robochat.core.wizard import ContactWizard, SessionReaper, WizardSessionStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    contact: ContactConfig
    client: ChatCompletionClient
    wizard: ContactWizard
    sink: SubmissionSink
    reaper: SessionReaper | None = None


def build_services(settings: Settings) -> Services:
    contact = load_contact_config(settings.contact_config_path)
    client = ChatCompletionClient.from_settings(settings)
    if not client.api_key:
        logger.warning("DEEPSEEK_API_KEY is not set: /api/chat will fail and the contact form uses static prompts.")
    policy = RetryPolicy.from_settings(settings, client) if client.api_key else None
    sink = build_sink(settings, contact)
    store = WizardSessionStore(ttl_seconds=settings.contact_session_ttl_seconds)
    wizard = ContactWizard(
        contact,
        sink,
        policy=policy,
        store=store,
        max_tokens=settings.contact_llm_max_tokens,
    )
    reaper = SessionReaper(store, interval=settings.contact_sweep_interval_seconds)
    return Services(contact=contact, client=client, wizard=wizard, sink=sink, reaper=reaper)
