from datetime import timedelta

import pytest
from bson import ObjectId

from stagora.core.auth import hash_password, verify_password
from stagora.core.config import Settings
from stagora.services import mailer_service
from stagora.services.mailer_service import (
    AccountNotFoundError,
    MailerError,
    MailerProvider,
    MailerService,
    RateLimitError,
    SendMailOptions,
    SmtpMailerProvider,
    generate_otp,
)
from stagora.services.mongo_service import utcnow


@pytest.fixture
def settings():
    return Settings(mail_from_email="team@stagora.io", mail_from_name="Stagora", mail_user="", mail_use_tls=False)


class RecordingProvider(MailerProvider):
    def __init__(self):
        self.sent = []

    def send_mail(self, options):
        self.sent.append(options)


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        self.messages.append(message)


# ============================================================
# provider
# ============================================================

def test_default_sender_and_reply_to(settings):
    payload = SmtpMailerProvider(settings).build_payload(SendMailOptions(to="a@b.io", subject="Hi", html="<p>x</p>"))
    assert payload.from_address == '"Stagora" <team@stagora.io>'
    assert payload.reply_to == "team@stagora.io"
    assert payload.html == "<p>x</p>"


def test_sender_without_configured_email():
    provider = SmtpMailerProvider(Settings(mail_from_email=""))
    payload = provider.build_payload(SendMailOptions(to="a@b.io", subject="Hi"))
    assert payload.from_address == "no-reply@localhost"
    assert payload.reply_to is None


def test_explicit_sender_wins(settings):
    payload = SmtpMailerProvider(settings).build_payload(SendMailOptions(
        to="a@b.io", subject="Hi", from_address="boss@stagora.io", reply_to="help@stagora.io"
    ))
    assert payload.from_address == "boss@stagora.io"
    assert payload.reply_to == "help@stagora.io"


def test_template_payload_gets_empty_context(settings):
    payload = SmtpMailerProvider(settings).build_payload(SendMailOptions(to="a@b.io", subject="Hi", template="info-message"))
    assert payload.template == "info-message"
    assert payload.context == {}
    assert payload.html is None


def test_html_falls_back_to_context_then_empty(settings):
    provider = SmtpMailerProvider(settings)
    from_context = provider.build_payload(SendMailOptions(to="a@b.io", subject="Hi", context={"html": "<b>ctx</b>"}))
    assert from_context.html == "<b>ctx</b>"
    empty = provider.build_payload(SendMailOptions(to="a@b.io", subject="Hi"))
    assert empty.html == ""


def test_send_mail_renders_template(settings, monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer_service.smtplib, "SMTP", FakeSMTP)

    SmtpMailerProvider(settings).send_mail(SendMailOptions(
        to="a@b.io", subject="Confirm your account", template="signup-confirmation",
        context={"otp": "042317", "from_name": "Stagora"},
    ))

    smtp = FakeSMTP.instances[-1]
    assert (smtp.host, smtp.port) == (settings.mail_host, settings.mail_port)
    message = smtp.messages[0]
    assert message["To"] == "a@b.io"
    assert message["Reply-To"] == "team@stagora.io"
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "042317" in html


def test_send_mail_logs_and_reraises(settings, monkeypatch, caplog):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(mailer_service.smtplib, "SMTP", refuse)

    with pytest.raises(ConnectionRefusedError):
        SmtpMailerProvider(settings).send_mail(SendMailOptions(to="a@b.io", subject="Hi", html="x"))
    assert "Failed to send mail to a@b.io" in caplog.text


# ============================================================
# OTP flows
# ============================================================

@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def service(db, provider, settings):
    return MailerService(db=db, provider=provider, settings=settings)


def _user(**fields):
    user = {"_id": ObjectId(), "email": "ann@school.fr", "role": "student"}
    user.update(fields)
    return user


def _set(db):
    """The $set document of the last users.update_one call."""
    return db["users"].update_one.call_args[0][1]["$set"]


def test_generate_otp_is_six_digits():
    for _ in range(20):
        otp = generate_otp()
        assert len(otp) == 6 and otp.isdigit()


def test_send_verification_email_stores_a_hash(service, db, provider):
    db["users"].find_one.return_value = _user()

    assert service.send_verification_email("Ann@School.fr", otp="123456") is True

    db["users"].find_one.assert_called_once_with({"email": "ann@school.fr"})
    stored = _set(db)
    assert stored["email_verification_code"] != "123456"
    assert verify_password("123456", stored["email_verification_code"])
    assert stored["email_verification_attempts"] == 0
    assert stored["otp_request_count"] == 1
    ttl = stored["email_verification_expires"] - stored["last_otp_request_at"]
    assert ttl == timedelta(hours=1)

    sent = provider.sent[0]
    assert sent.template == "signup-confirmation"
    assert sent.context["otp"] == "123456"


def test_password_reset_code_lasts_five_minutes(service, db, provider):
    db["users"].find_one.return_value = _user()
    service.send_password_reset_email("ann@school.fr", otp="654321")
    stored = _set(db)
    assert stored["password_reset_expires"] - stored["last_otp_request_at"] == timedelta(minutes=5)
    assert provider.sent[0].template == "reset-password"


def test_unknown_account(service, db):
    db["users"].find_one.return_value = None
    with pytest.raises(AccountNotFoundError):
        service.send_password_reset_email("ghost@school.fr")


def test_rate_limit_within_the_hour(service, db, provider):
    db["users"].find_one.return_value = _user(
        otp_request_count=5, last_otp_request_at=utcnow() - timedelta(minutes=10)
    )
    with pytest.raises(RateLimitError):
        service.send_verification_email("ann@school.fr")
    assert provider.sent == []


def test_rate_limit_window_rolls_over(service, db):
    db["users"].find_one.return_value = _user(
        otp_request_count=5, last_otp_request_at=utcnow() - timedelta(hours=2)
    )
    service.send_verification_email("ann@school.fr", otp="111111")
    assert _set(db)["otp_request_count"] == 1


def _pending_code(prefix, otp="123456", attempts=0, expires_in=timedelta(minutes=5)):
    return _user(**{
        f"{prefix}_code": hash_password(otp),
        f"{prefix}_expires": utcnow() + expires_in,
        f"{prefix}_attempts": attempts,
    })


def test_verify_signup_otp(service, db):
    db["users"].find_one.return_value = _pending_code("email_verification")
    assert service.verify_signup_otp("ann@school.fr", "123456") is True
    assert _set(db)["is_verified"] is True
    cleared = db["users"].update_one.call_args_list[0][0][1]["$set"]
    assert cleared["email_verification_code"] is None


def test_wrong_otp_counts_an_attempt(service, db):
    db["users"].find_one.return_value = _pending_code("email_verification")
    with pytest.raises(MailerError, match="Invalid OTP"):
        service.verify_signup_otp("ann@school.fr", "000000")
    assert db["users"].update_one.call_args[0][1] == {"$inc": {"email_verification_attempts": 1}}


def test_expired_otp_is_cleared(service, db):
    db["users"].find_one.return_value = _pending_code("password_reset", expires_in=timedelta(minutes=-1))
    with pytest.raises(MailerError, match="OTP expired"):
        service.verify_password_reset_otp("ann@school.fr", "123456")
    assert _set(db)["password_reset_code"] is None


def test_too_many_attempts(service, db):
    db["users"].find_one.return_value = _pending_code("password_reset", attempts=5)
    with pytest.raises(MailerError, match="Too many verification attempts"):
        service.verify_password_reset_otp("ann@school.fr", "123456")
    assert _set(db)["password_reset_code"] is None


def test_verified_reset_is_recorded(service, db):
    db["users"].find_one.return_value = _pending_code("password_reset")
    service.verify_password_reset_otp("ann@school.fr", "123456")
    assert "password_reset_verified_at" in _set(db)


def test_update_password_requires_verified_otp(service, db):
    db["users"].find_one.return_value = _user()
    with pytest.raises(MailerError, match="not verified"):
        service.update_password("ann@school.fr", "N3w!password")


def test_update_password_verification_expires(service, db):
    db["users"].find_one.return_value = _user(password_reset_verified_at=utcnow() - timedelta(minutes=11))
    with pytest.raises(MailerError, match="expired"):
        service.update_password("ann@school.fr", "N3w!password")


def test_update_password(service, db):
    db["users"].find_one.return_value = _user(password_reset_verified_at=utcnow() - timedelta(minutes=2))
    assert service.update_password("ann@school.fr", "N3w!password") is True
    stored = _set(db)
    assert verify_password("N3w!password", stored["password_hash"])
    assert stored["password_reset_verified_at"] is None


def test_custom_template_subject(service, provider):
    service.send_custom_template_email("Ann@School.fr", "welcome")
    sent = provider.sent[0]
    assert sent.to == "ann@school.fr"
    assert sent.subject == "Notification from Stagora"
    assert sent.context == {"from_name": "Stagora"}


def test_account_ban_email(service, provider):
    service.send_account_ban_email("Troll@Stagora.io", "spam in the forum")

    sent = provider.sent[0]
    assert sent.to == "troll@stagora.io"
    assert sent.template == "info-message"
    assert "spam in the forum" in sent.context["message"]
