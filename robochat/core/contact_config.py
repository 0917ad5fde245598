"""
Contact form configuration: which fields to collect, in what order, how to validate them,
and the bot's static messages. Loaded from JSON (robochat/contact_config.json by default).
"""
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from robochat.core.errors import FieldValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"[^\s@]+@[^\s@]+\.[^\s@]+"
PHONE_PATTERN = r"[0-9+\-\s]{10,15}"


# ---- Validators: validate(text) -> error message or None ----

@dataclass(frozen=True)
class MinLength:
    length: int
    message: str

    def validate(self, value: str) -> str | None:
        return None if len(value) >= self.length else self.message


@dataclass(frozen=True)
class Pattern:
    pattern: str
    message: str

    def validate(self, value: str) -> str | None:
        return None if re.fullmatch(self.pattern, value) else self.message


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    prompt: str
    validator: MinLength | Pattern | None = None

    def validate(self, value: str) -> str | None:
        if self.validator is None:
            return None
        return self.validator.validate(value)

    def check(self, value: str) -> None:
        error = self.validate(value)
        if error:
            raise FieldValidationError(self.name, error)


# ---- JSON schema ----

class ValidatorConfig(BaseModel):
    type: Literal["min_length", "pattern", "email", "phone"]
    value: int | str | None = None
    message: str | None = None

    def build(self) -> MinLength | Pattern:
        if self.type == "min_length":
            length = int(self.value or 1)
            return MinLength(length, self.message or f"Must be at least {length} characters")
        if self.type == "email":
            return Pattern(EMAIL_PATTERN, self.message or "Please enter a valid email address")
        if self.type == "phone":
            return Pattern(PHONE_PATTERN, self.message or "Please enter a valid phone number")
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("pattern validator needs a regular expression in 'value'")
        re.compile(self.value)
        return Pattern(self.value, self.message or "Invalid input format. Please try again.")


class SlotConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., min_length=1)
    label: str
    prompt: str
    validator: ValidatorConfig | None = Field(None, alias="validate")

    def to_field(self) -> FieldSpec:
        return FieldSpec(
            name=self.key,
            label=self.label,
            prompt=self.prompt,
            validator=self.validator.build() if self.validator else None,
        )


class ContactConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slots: list[SlotConfig] = Field(..., min_length=1)
    greeting: str = "Hello! I'm your intelligent assistant. To better serve you, I need to collect some basic information first."
    completion_message: str = Field(
        "Thank you for your cooperation! Your information has been successfully submitted.",
        alias="completionMessage",
    )
    error_message: str = Field(
        "Sorry, we encountered a technical issue. Please try again later.",
        alias="errorMessage",
    )
    system_prompt: str = Field(
        "You are a professional customer service bot. Your task is to collect necessary information "
        "through friendly conversation. Ask only one question at a time, be friendly and professional.",
        alias="systemPrompt",
    )
    target_email: str = Field("", alias="targetEmail")
    email_subject: str = Field("New Customer Contact Info", alias="emailSubject")

    def fields(self) -> list[FieldSpec]:
        return [slot.to_field() for slot in self.slots]

    def labels(self) -> dict[str, str]:
        return {slot.key: slot.label for slot in self.slots}

    def public_view(self) -> dict:
        """What the widget gets from GET /api/contact-config."""
        return {
            "slots": [{"key": s.key, "label": s.label, "prompt": s.prompt} for s in self.slots],
            "greeting": self.greeting,
            "completionMessage": self.completion_message,
        }


def load_contact_config(path: Path) -> ContactConfig:
    """Parse and validate the config file. Raises ValueError (or OSError) if it is missing or invalid."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    config = ContactConfig.model_validate(raw)
    # Build validators now so a bad regex fails at startup, not mid-conversation
    config.fields()
    logger.info("Loaded contact config from %s (%d fields)", path, len(config.slots))
    return config
