"""Email bodies for auth and transactional messages.

Rendered with an autoescaping Jinja2 environment, so user-supplied
values (names, messages, addresses) are HTML-escaped. Every link goes
through the redirect allowlist first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

import jinja2

from nested.email.validation import EmailActionType, TransactionalType, get_safe_redirect_url
from nested.settings import Settings, get_settings


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html: str
    text: str


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Nested</title>
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
           line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }
    .container { background: #fff; border-radius: 8px; padding: 40px; border: 1px solid #e0e0e0; }
    .logo { font-size: 28px; font-weight: bold; color: #000; text-align: center; margin-bottom: 30px; }
    .button { display: inline-block; background: #000; color: #fff !important; text-decoration: none;
              padding: 14px 28px; border-radius: 6px; font-weight: 600; margin: 20px 0; }
    .code { font-family: 'SF Mono', Monaco, monospace; font-size: 32px; font-weight: bold;
            letter-spacing: 4px; background: #f5f5f5; padding: 16px 24px; border-radius: 8px; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e0e0e0;
              font-size: 12px; color: #999; text-align: center; }
  </style>
</head>
<body>
  <div class="container">
    <div class="logo">nested</div>
    {% block content %}{% endblock %}
    <div class="footer">
      <p>&copy; {{ year }} Nested. All rights reserved.</p>
      <p>If you didn't request this email, you can safely ignore it.</p>
    </div>
  </div>
</body>
</html>
"""

_BUTTON = '{% if url %}<p style="text-align: center;"><a href="{{ url }}" class="button">{{ label }}</a></p>{% endif %}'

_TEMPLATES = {
    "layout.html": _LAYOUT,
    "signup.html": """{% extends "layout.html" %}{% block content %}
<h1>Welcome to Nested!</h1>
<p>Thanks for signing up. Please confirm your email address to get started.</p>
""" + _BUTTON + """
<p>This link expires in 24 hours.</p>
{% endblock %}""",
    "recovery.html": """{% extends "layout.html" %}{% block content %}
<h1>Reset your password</h1>
<p>We received a request to reset your password. Click the button below to choose a new one.</p>
""" + _BUTTON + """
<p>This link expires in 1 hour. If you didn't request this, ignore this email.</p>
{% endblock %}""",
    "magiclink.html": """{% extends "layout.html" %}{% block content %}
<h1>Sign in to Nested</h1>
<p>Click the button below to sign in to your account.</p>
""" + _BUTTON + """
<p>This link expires in 1 hour.</p>
{% endblock %}""",
    "invite.html": """{% extends "layout.html" %}{% block content %}
<h1>You're invited!</h1>
<p>Someone invited you to join Nested, the social platform for college students.</p>
""" + _BUTTON + """
<p>This invitation expires in 7 days.</p>
{% endblock %}""",
    "email_change.html": """{% extends "layout.html" %}{% block content %}
<h1>Confirm email change</h1>
<p>You requested to change your email address{% if new_email %} to <strong>{{ new_email }}</strong>{% endif %}.</p>
""" + _BUTTON + """
<p>If you didn't request this change, please secure your account immediately.</p>
{% endblock %}""",
    "reauthentication.html": """{% extends "layout.html" %}{% block content %}
<h1>Security verification</h1>
<p>Please enter the code below to confirm your identity:</p>
<p style="text-align: center;"><span class="code">{{ token }}</span></p>
<p>This code expires in 10 minutes. If you didn't request this, please secure your account.</p>
{% endblock %}""",
    "transactional.html": """{% extends "layout.html" %}{% block content %}
<h1>{{ heading }}</h1>
<p>{{ body }}</p>
{% if bullets %}<ul>{% for item in bullets %}<li>{{ item }}</li>{% endfor %}</ul>{% endif %}
""" + _BUTTON + """
{% endblock %}""",
}

_env = jinja2.Environment(
    loader=jinja2.DictLoader(_TEMPLATES),
    autoescape=True,
    undefined=jinja2.StrictUndefined,
)

_AUTH_COPY: dict[EmailActionType, tuple[str, str, str]] = {
    # subject, button label, plain-text lead
    EmailActionType.SIGNUP: ("Confirm your Nested account", "Confirm Email", "Confirm your email"),
    EmailActionType.RECOVERY: ("Reset your Nested password", "Reset Password", "Reset your password"),
    EmailActionType.MAGICLINK: ("Your Nested login link", "Sign In", "Sign in to Nested"),
    EmailActionType.INVITE: ("You've been invited to Nested", "Accept Invitation", "Accept your invitation"),
    EmailActionType.EMAIL_CHANGE: (
        "Confirm your email change on Nested",
        "Confirm Change",
        "Confirm your email change",
    ),
    EmailActionType.REAUTHENTICATION: ("Confirm your identity on Nested", "", "Your code"),
}


def _render(name: str, **context: Any) -> str:
    return _env.get_template(name).render(year=datetime.now(UTC).year, **context)


def confirm_url(
    token_hash: str,
    action: EmailActionType,
    redirect_to: str | None,
    site_url: str | None,
    settings: Settings | None = None,
) -> str:
    """Backend verification link that lands on a safe redirect."""
    settings = settings or get_settings()
    query = urlencode(
        {
            "token": token_hash,
            "type": action.value,
            "redirect_to": get_safe_redirect_url(redirect_to, site_url, settings),
        }
    )
    return f"{settings.supabase_url.rstrip('/')}/auth/v1/verify?{query}"


def auth_email(
    action: EmailActionType,
    *,
    token: str = "",
    token_hash: str = "",
    redirect_to: str | None = None,
    site_url: str | None = None,
    new_email: str | None = None,
    settings: Settings | None = None,
) -> EmailTemplate:
    subject, label, lead = _AUTH_COPY[action]

    if action is EmailActionType.REAUTHENTICATION:
        html = _render("reauthentication.html", token=token)
        return EmailTemplate(subject, html, f"{lead}: {token}\n\nThis code expires in 10 minutes.")

    url = confirm_url(token_hash, action, redirect_to, site_url, settings)
    html = _render(f"{action.value}.html", url=url, label=label, new_email=new_email)
    return EmailTemplate(subject, html, f"{lead}: {url}")


def transactional_email(
    kind: TransactionalType | None,
    *,
    recipient_name: str | None = None,
    subject: str | None = None,
    message: str | None = None,
    cta_text: str | None = None,
    cta_url: str | None = None,
    settings: Settings | None = None,
) -> EmailTemplate:
    """Render a transactional email. Unknown kinds get a generic message."""
    name = recipient_name or "there"
    url = get_safe_redirect_url(cta_url, settings=settings) if cta_url else None
    bullets: list[str] = []

    if kind is TransactionalType.WELCOME:
        subject = "Welcome to Nested!"
        heading = f"Welcome, {name}!"
        body = "You're officially part of the Nested community. Here's what you can do:"
        bullets = [
            "Connect with students at your university",
            "Find projects that need your skills",
            "Build a team for your own idea",
        ]
        label = "Explore Nested"
        text = f"Welcome to Nested, {name}!\n\nYou're officially part of the community."
    elif kind is TransactionalType.NOTIFICATION:
        subject = subject or "New notification from Nested"
        heading = f"Hey {name}!"
        body = message or "You have a new notification on Nested."
        label = cta_text or "View Details"
        text = body
    elif kind is TransactionalType.MATCH:
        subject = "You've got a new match on Nested!"
        heading = "New match!"
        body = f"Hey {name}, you've connected with someone new on Nested."
        label = "Start Chatting"
        text = "You've got a new match on Nested!"
    elif kind is TransactionalType.EVENT_REMINDER:
        subject = subject or "Event reminder from Nested"
        heading = "Event reminder"
        reminder = message or "don't forget about your upcoming event!"
        body = f"Hey {name}, {reminder}"
        label = "View Event"
        text = f"Event reminder: {reminder}"
    else:
        subject = subject or "Message from Nested"
        heading = f"Hey {name}!"
        body = message or "You have a message from Nested."
        label = ""
        url = None
        text = body

    html = _render("transactional.html", heading=heading, body=body, bullets=bullets, url=url, label=label)
    return EmailTemplate(subject, html, text)
