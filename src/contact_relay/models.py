# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the contact relay.

Models:
    - MailRequest: One message to dispatch (immutable)
    - SendReceipt: What a transport reports after accepting a message
    - DispatchSuccess / DispatchFailure: The dispatch result union
    - ContactForm: Raw contact-form submission received over HTTP
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import FailureKind, RelayError


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class MailRequest(BaseModel):
    """A message to relay.

    All fields are optional at construction time so that a malformed request
    can still reach the dispatcher, which reports the problem as a result
    instead of raising.

    Attributes:
        to: Recipient address (required).
        subject: Subject line (required).
        text: Plain text body.
        html: HTML body. At least one of ``text`` and ``html`` is required.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    to: str | None = None
    subject: str | None = None
    text: str | None = None
    html: str | None = None

    def validation_error(self) -> str | None:
        """Return the first field-specific problem, or None when well formed."""
        if _blank(self.to):
            return "Recipient email (to) is required"
        if _blank(self.subject):
            return "Email subject is required"
        if _blank(self.text) and _blank(self.html):
            return "Email content (text or html) is required"
        return None


class SendReceipt(BaseModel):
    """Provider acknowledgement of an accepted message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    response: str


class DispatchSuccess(BaseModel):
    """Message accepted by the transport."""

    status: Literal["sent"] = "sent"
    message_id: str
    response: str
    transport: str

    @property
    def ok(self) -> bool:
        return True


class DispatchFailure(BaseModel):
    """Message not delivered.

    ``message`` is safe to show to end users; ``details`` and ``code`` carry
    the raw provider diagnostics for operators.
    """

    status: Literal["error"] = "error"
    kind: FailureKind
    message: str
    details: str | None = None
    code: int | None = None

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, error: RelayError) -> DispatchFailure:
        return cls(kind=error.kind, message=error.user_message, details=error.details, code=error.code)


DispatchResult = Annotated[Union[DispatchSuccess, DispatchFailure], Field(discriminator="status")]


class ContactForm(BaseModel):
    """Contact-form submission as posted by the frontend.

    Required fields are checked by the route so that it can report every
    missing field at once.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = None
    email: str | None = None
    message: str | None = None
    phone: str | None = None
    company: str | None = None

    def missing_fields(self) -> dict[str, bool]:
        return {
            "name": not self.name,
            "email": not self.email,
            "message": not self.message,
        }
