"""SMTP mailer tests with smtplib replaced by a fake."""

import smtplib

import pytest

from userhub.core.error_messages import MailDeliveryError
from userhub.utils import email_utils
from userhub.utils.email_utils import VERIFY_SUBJECT, Mailer, verification_link


class FakeSMTP:
    """Records what the mailer does with a connection."""

    instances = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.sent.append(msg)


class FakeSMTPSSL(FakeSMTP):
    pass


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_utils.smtplib, "SMTP_SSL", FakeSMTPSSL)
    yield
    FakeSMTP.fail_with = None


def make_mailer(**overrides):
    options = dict(
        host="smtp.example.com",
        port=587,
        user="noreply@example.com",
        password="pw",
        sender="noreply@example.com",
        base_url="http://localhost:3000/",
    )
    options.update(overrides)
    return Mailer(**options)


def html_body(msg):
    return msg.get_body(preferencelist=("html",)).get_content()


def test_verification_link():
    assert verification_link("http://localhost:3000/", "tok") == "http://localhost:3000/users/verify/tok"


@pytest.mark.asyncio
async def test_verification_email_uses_starttls_and_carries_token():
    mailer = make_mailer()

    await mailer.send_verification_email("a@example.com", "tok-123")

    [smtp] = FakeSMTP.instances
    assert type(smtp) is FakeSMTP
    assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
    assert smtp.started_tls is True
    assert smtp.logged_in == ("noreply@example.com", "pw")

    [msg] = smtp.sent
    assert msg["To"] == "a@example.com"
    assert msg["From"] == "noreply@example.com"
    assert msg["Subject"] == VERIFY_SUBJECT
    assert "http://localhost:3000/users/verify/tok-123" in html_body(msg)


def test_ssl_connection_when_configured():
    mailer = make_mailer(port=465, use_ssl=True)

    mailer.send_email("a@example.com", "Hello", "<p>hi</p>")

    [smtp] = FakeSMTP.instances
    assert type(smtp) is FakeSMTPSSL
    assert smtp.started_tls is False
    assert len(smtp.sent) == 1


def test_no_login_without_user():
    mailer = make_mailer(user="", password="")

    mailer.send_email("a@example.com", "Hello", "<p>hi</p>")

    assert FakeSMTP.instances[0].logged_in is None


@pytest.mark.parametrize(
    "error",
    [smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"no such user")}), ConnectionRefusedError()],
)
def test_send_failures_become_mail_delivery_errors(error):
    FakeSMTP.fail_with = error
    mailer = make_mailer()

    with pytest.raises(MailDeliveryError) as exc_info:
        mailer.send_email("a@example.com", "Hello", "<p>hi</p>")

    assert exc_info.value.status_code == 500
    assert "a@example.com" in exc_info.value.internal


@pytest.mark.asyncio
async def test_async_send_propagates_delivery_error():
    FakeSMTP.fail_with = smtplib.SMTPServerDisconnected("gone")

    with pytest.raises(MailDeliveryError):
        await make_mailer().send_verification_email("a@example.com", "tok")
