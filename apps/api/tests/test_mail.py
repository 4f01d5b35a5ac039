from datetime import datetime, timezone

from ticketdesk.services import mail_service
from ticketdesk.services.mail_notifications import build_password_reset_mail, reset_password_link
from ticketdesk.services.mail_service import MailPayload, OutboxMailer, SmtpMailer, normalize_email_address
from ticketdesk.stores.records import UserRecord


def make_user() -> UserRecord:
    return UserRecord(
        id="u1",
        name="Alice <admin>",
        email="a@x.com",
        password_hash="h",
        role="user",
        created_at=datetime.now(timezone.utc),
    )


def make_payload(recipient="a@x.com") -> MailPayload:
    return MailPayload(
        event_type="password_reset",
        subject="s",
        body_html="<p>b</p>",
        body_text="b",
        recipient_email=recipient,
    )


def test_reset_link():
    assert reset_password_link("http://desk.io/", "a+b/c") == "http://desk.io/reset-password?token=a%2Bb%2Fc"


def test_reset_mail_content():
    mail = build_password_reset_mail(make_user(), "tok123", app_base_url="http://desk.io", ttl_min=60)
    assert mail.recipient_email == "a@x.com"
    assert "http://desk.io/reset-password?token=tok123" in mail.body_text
    assert "60 minutes" in mail.body_text
    # names are escaped in the html part
    assert "Alice &lt;admin&gt;" in mail.body_html


def test_normalize_email_address():
    assert normalize_email_address("a@x.com") == "a@x.com"
    assert normalize_email_address("not an email") is None
    assert normalize_email_address("") is None


def test_outbox_keeps_messages():
    mailer = OutboxMailer()
    mailer.send(make_payload())
    assert [m.recipient_email for m in mailer.sent] == ["a@x.com"]


def test_smtp_mailer_skips_when_unconfigured(monkeypatch):
    started = []
    monkeypatch.setattr(mail_service.threading, "Thread", lambda *a, **kw: started.append(kw))
    SmtpMailer("", 25, "").send(make_payload())
    SmtpMailer("smtp.desk.io", 25, "desk@desk.io").send(make_payload("broken"))
    assert started == []


def test_smtp_mailer_delivers(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def send_message(self, msg):
            sent.append(msg)

    monkeypatch.setattr(mail_service.smtplib, "SMTP", FakeSMTP)
    mailer = SmtpMailer("smtp.desk.io", 25, "desk@desk.io")
    mailer._deliver(make_payload())
    assert sent[0]["To"] == "a@x.com"
    assert "desk@desk.io" in sent[0]["From"]


def test_smtp_failure_is_logged_not_raised(monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(mail_service.smtplib, "SMTP", boom)
    SmtpMailer("smtp.desk.io", 25, "desk@desk.io")._deliver(make_payload())
    assert "mail delivery failed" in caplog.text
