"""Outgoing email: Jinja2-rendered plain-text messages sent through an HTTP email API.

When ``EMAIL_API_KEY`` is not configured delivery is disabled and messages are
only logged, so local development and tests never need a mail provider.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from jinja2 import DictLoader, Environment, StrictUndefined, TemplateNotFound

from openbookcorner.core.config import settings

logger = logging.getLogger(__name__)

# Each template: first line is the subject, the rest is the body.
_TEMPLATES: dict[str, str] = {
    "verification_code": """\
Your OpenBookCorner sign-in code: {{ code }}
Hi {{ name }},

Use this code to sign in to OpenBookCorner:

    {{ code }}

It expires in {{ ttl_minutes }} minutes. If you did not ask for it, ignore this email.
""",
    "invitation": """\
You have been invited to {{ library_name }} on OpenBookCorner
Hi {{ name }},

{{ inviter_name }} added you to the {{ library_name }} book corner as {{ role_label }}.

Sign in at {{ login_url }} with this email address; we will send you a one-time code.
""",
    "borrow_confirmation": """\
You borrowed "{{ title }}"
Hi {{ name }},

You borrowed "{{ title }}" by {{ author }} from {{ library_name }}.
Please return it by {{ due_date.strftime('%A, %d %B %Y') }}.
""",
    "due_reminder": """\
Reminder: "{{ title }}" is due {{ due_date.strftime('%d %B') }}
Hi {{ name }},

"{{ title }}" by {{ author }} is due back at {{ library_name }} on {{ due_date.strftime('%A, %d %B %Y') }}.
{% if renewals_left == 1 %}You can renew it once more from the app if you need more time.
{% elif renewals_left > 1 %}You can renew it {{ renewals_left }} more times from the app if you need more time.
{% endif %}
""",
    "overdue_notice": """\
Overdue: please return "{{ title }}"
Hi {{ name }},

"{{ title }}" by {{ author }} was due back at {{ library_name }} on {{ due_date.strftime('%A, %d %B %Y') }} \
({{ days_overdue }} day{{ 's' if days_overdue != 1 else '' }} ago).
You cannot borrow other books until it is returned.
""",
    "request_decision": """\
Your book request for "{{ title }}" was {{ status_label }}
Hi {{ name }},

Your request for "{{ title }}" at {{ library_name }} was {{ status_label }}.
{% if admin_note %}
Note from the library: {{ admin_note }}
{% endif %}
""",
    "donation_decision": """\
Your donation of "{{ title }}" was {{ status_label }}
Hi {{ name }},

Thank you for offering "{{ title }}" to {{ library_name }}. The donation was {{ status_label }}.
{% if admin_note %}
Note from the library: {{ admin_note }}
{% endif %}
""",
}

_JINJA_ENV = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=False,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


class EmailDeliveryError(RuntimeError):
    """Raised when the email API rejects or cannot receive a message."""


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str


def render_email(template: str, to: str, context: dict[str, Any]) -> EmailMessage:
    try:
        rendered = _JINJA_ENV.get_template(template).render(**context)
    except TemplateNotFound:
        raise ValueError(f"Unknown email template: {template}")
    subject, _, body = rendered.partition("\n")
    return EmailMessage(to=to, subject=subject.strip(), text=body.strip() + "\n")


class Mailer:
    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    async def send(self, *, to: str, template: str, context: dict[str, Any]) -> bool:
        """Render and deliver a message.

        Returns ``True`` once the API accepted it and ``False`` when delivery is
        disabled. Raises :class:`EmailDeliveryError` on transport or API errors.
        """
        message = render_email(template, to, context)

        if not settings.email_enabled:
            logger.info("Email delivery disabled; not sending %r to %s", message.subject, to)
            if settings.APP_ENV == "development":
                logger.debug("Email body for %s:\n%s", to, message.text)
            return False

        payload = {
            "from": settings.EMAIL_FROM,
            "to": [message.to],
            "subject": message.subject,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http:
                resp = await http.post(
                    settings.EMAIL_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {settings.EMAIL_API_KEY}"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email to {to} failed: {exc}") from exc

        logger.info("Sent %s email to %s", template, to)
        return True


mailer = Mailer()


async def notify(*, to: str, template: str, context: dict[str, Any]) -> bool:
    """Best-effort delivery for notifications that must not fail the request."""
    try:
        return await mailer.send(to=to, template=template, context=context)
    except EmailDeliveryError as exc:
        logger.warning("Notification %s not delivered: %s", template, exc)
        return False
