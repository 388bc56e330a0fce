import smtplib

import pytest

from core.exceptions import MailDeliveryError
from utils.mail_sender import ConsoleMailSender, MailSender, SmtpMailSender, build_mail_sender
from utils.mail_templates import (
    password_updated_email,
    reset_password_email,
    verification_email,
    welcome_email,
)


def test_verification_email_shows_code_and_lifetime() -> None:
    body = verification_email("482913", 300)

    assert '<h2 style="font-weight:bold;">482913</h2>' in body
    assert "5 minutes" in body


def test_reset_email_links_and_greets() -> None:
    body = reset_password_email("http://localhost:3000/reset-password/abc", "Ada", 300)

    assert 'href="http://localhost:3000/reset-password/abc"' in body
    assert "Hey Ada" in body


def test_template_values_are_escaped() -> None:
    body = welcome_email("<script>alert(1)</script>")

    assert "<script>" not in body
    assert "&lt;script&gt;" in body


def test_password_updated_email_names_account() -> None:
    assert "<b>a@x.com</b>" in password_updated_email("a@x.com", "Ada Lovelace")


def test_build_mail_sender() -> None:
    assert isinstance(build_mail_sender("console"), ConsoleMailSender)
    assert isinstance(build_mail_sender("smtp"), SmtpMailSender)


def test_mail_sender_requires_send() -> None:
    with pytest.raises(TypeError):
        MailSender()


class _FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def send_message(self, message):
        _FakeSMTP.sent.append(message)


def test_smtp_sender_delivers_html(monkeypatch) -> None:
    _FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    sender = SmtpMailSender(host="mail", port=25, username="", use_tls=False, sender="no-reply@x.com")

    result = sender.send("a@x.com", "Hello", "<p>hi</p>")

    assert result.to_address == "a@x.com"
    message = _FakeSMTP.sent[0]
    assert message["To"] == "a@x.com"
    assert message["From"] == "no-reply@x.com"


def test_smtp_failure_becomes_delivery_error(monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("no server")

    monkeypatch.setattr(smtplib, "SMTP", refuse)

    with pytest.raises(MailDeliveryError):
        SmtpMailSender(host="mail", port=25).send("a@x.com", "Hello", "<p>hi</p>")


def test_best_effort_swallows_delivery_error(monkeypatch) -> None:
    sender = ConsoleMailSender()

    def fail(*args):
        raise MailDeliveryError()

    monkeypatch.setattr(sender, "send", fail)

    assert sender.send_best_effort("a@x.com", "Hello", "<p>hi</p>") is None
