"""Mail template assembly.

This module renders the HTML bodies of the account emails with Jinja2.
"""

from typing import Optional

import jinja2

from config import PLATFORM_NAME

_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{{ title }}</title>
</head>
<body style="background-color:#ffffff;font-family:Arial,sans-serif;font-size:16px;line-height:1.4;margin:0;padding:0;">
    <div style="max-width:600px;margin:0 auto;padding:20px;text-align:center;">
        <div style="font-size:18px;font-weight:bold;margin-bottom:20px;">{{ title }}</div>
        <div style="font-size:16px;margin-bottom:20px;">
            {{ body }}
        </div>
        <div style="font-size:14px;color:#999999;margin-top:20px;">
            If you have any questions, reply to this email. {{ platform }} support is happy to help.
        </div>
    </div>
</body>
</html>
"""

_VERIFICATION = """<p>Dear user,</p>
<p>Thank you for registering with {{ platform }}. To complete your registration,
use the following OTP (One-Time Password) to verify your account:</p>
<h2 style="font-weight:bold;">{{ otp }}</h2>
<p>This OTP is valid for {{ minutes }} minutes. If you did not request this
verification, please disregard this email.</p>"""

_WELCOME = """<p>Hey {{ first_name }},</p>
<p>Your {{ platform }} account is ready. Welcome aboard!</p>"""

_RESET_PASSWORD = """<p>Hey {{ name }},</p>
<p>We received a request to reset the password of your account.
The link below is valid for {{ minutes }} minutes:</p>
<p><a href="{{ link }}">{{ link }}</a></p>
<p>If you did not request a password reset, you can ignore this email.</p>"""

_PASSWORD_UPDATED = """<p>Hey {{ name }},</p>
<p>The password for your account <b>{{ email }}</b> has been updated.</p>
<p>If you did not make this change, reset your password immediately.</p>"""


class MailTemplate:
    """A titled HTML mail body rendered inside the shared layout."""

    _layout = jinja2.Template(_LAYOUT)

    def __init__(self, title: str, template_string: str):
        """Initialize the template.

        Args:
            title: Heading shown at the top of the mail.
            template_string: Jinja2 template for the body. Values are
                HTML-escaped.
        """
        self.title = title
        self.template = jinja2.Template(template_string, autoescape=True)

    def render(self, **context) -> str:
        body = self.template.render(platform=PLATFORM_NAME, **context)
        return self._layout.render(title=self.title, body=body, platform=PLATFORM_NAME)


VERIFICATION_TEMPLATE = MailTemplate("OTP Verification Email", _VERIFICATION)
WELCOME_TEMPLATE = MailTemplate("Welcome", _WELCOME)
RESET_PASSWORD_TEMPLATE = MailTemplate("Password Reset", _RESET_PASSWORD)
PASSWORD_UPDATED_TEMPLATE = MailTemplate("Password Update Confirmation", _PASSWORD_UPDATED)


def verification_email(otp: str, ttl_seconds: int) -> str:
    return VERIFICATION_TEMPLATE.render(otp=otp, minutes=ttl_seconds // 60)


def welcome_email(first_name: str) -> str:
    return WELCOME_TEMPLATE.render(first_name=first_name)


def reset_password_email(link: str, name: Optional[str], ttl_seconds: int) -> str:
    return RESET_PASSWORD_TEMPLATE.render(
        link=link, name=name or "there", minutes=ttl_seconds // 60
    )


def password_updated_email(email: str, name: str) -> str:
    return PASSWORD_UPDATED_TEMPLATE.render(email=email, name=name)
