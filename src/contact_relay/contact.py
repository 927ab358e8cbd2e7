# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Rendering of contact-form submissions into email content."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from html import escape

from .models import ContactForm, MailRequest

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIMESTAMP_FORMAT = "%m/%d/%Y, %H:%M:%S"


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


@dataclass(frozen=True)
class ContactEmail:
    subject: str
    text: str
    html: str

    def to_request(self, recipient: str | None) -> MailRequest:
        return MailRequest(to=recipient, subject=self.subject, text=self.text, html=self.html)


def _html_field(label: str, value: str) -> str:
    return (
        '<div style="margin-bottom: 20px;">'
        f'<div style="color: #667eea; font-weight: 600; font-size: 14px; margin-bottom: 4px;">{label}:</div>'
        f'<div style="color: #333333; font-size: 16px;">{value}</div>'
        "</div>"
    )


def render_contact_email(form: ContactForm, received_at: datetime, service_name: str = "Contact Relay") -> ContactEmail:
    """Build subject, plain text and HTML bodies for a submission.

    Every user-supplied value is HTML-escaped in the HTML body. Line breaks
    are dropped from the subject so the header stays valid.

    Args:
        form: Submission with ``name``, ``email`` and ``message`` present.
        received_at: Time the submission was received.
        service_name: Shown in the HTML footer.
    """
    timestamp = received_at.strftime(TIMESTAMP_FORMAT)
    name_line = " ".join(form.name.split())
    subject = f"New Contact Form Submission from {name_line}"

    text_lines = [f"You have received a new message from {form.name} ({form.email}):", "", form.message, ""]
    if form.phone:
        text_lines.append(f"Phone: {form.phone}")
    if form.company:
        text_lines.append(f"Company: {form.company}")
    text_lines += ["", f"Received at: {timestamp}"]
    text = "\n".join(text_lines)

    name = escape(form.name)
    email = escape(form.email)
    fields = [
        _html_field("Name", name),
        _html_field("Email", f'<a href="mailto:{email}" style="color: #667eea; text-decoration: none;">{email}</a>'),
    ]
    if form.phone:
        fields.append(_html_field("Phone", escape(form.phone)))
    if form.company:
        fields.append(_html_field("Company", escape(form.company)))
    fields.append(
        '<div style="margin-bottom: 20px;">'
        '<div style="color: #667eea; font-weight: 600; font-size: 14px; margin-bottom: 8px;">Message:</div>'
        '<div style="background-color: #f5f7fa; border-left: 4px solid #667eea; padding: 15px; '
        'border-radius: 4px; color: #333333; font-size: 15px; line-height: 1.6; white-space: pre-wrap;">'
        f"{escape(form.message)}</div>"
        "</div>"
    )

    html = (
        "<!DOCTYPE html>"
        '<html><head><meta charset="UTF-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0"></head>'
        "<body style=\"margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;\">"
        '<div style="max-width: 600px; margin: 0 auto; border: 1px solid #e0e0e0; border-radius: 8px; overflow: hidden;">'
        '<div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px 20px; text-align: center;">'
        '<h1 style="color: #ffffff; margin: 0; font-size: 24px; font-weight: 600;">New Contact Form Submission</h1>'
        f'<p style="color: #ffffff; margin: 10px 0 0 0; font-size: 14px; opacity: 0.9;">{timestamp}</p>'
        "</div>"
        f'<div style="padding: 30px 20px; background-color: #ffffff;">{"".join(fields)}</div>'
        '<div style="background-color: #f5f7fa; padding: 20px; text-align: center; border-top: 1px solid #e0e0e0;">'
        '<p style="color: #999999; font-size: 12px; margin: 0;">'
        f"This email was sent from the <strong>{escape(service_name)}</strong> contact form<br>"
        f"Received at {timestamp}</p>"
        "</div>"
        "</div></body></html>"
    )
    return ContactEmail(subject=subject, text=text, html=html)
