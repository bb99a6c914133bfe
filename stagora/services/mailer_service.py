"""
Mailer Service - outgoing email.

Two layers:
- SmtpMailerProvider: turns SendMailOptions into an SMTP message, rendering
  Jinja2 templates from stagora/templates when a template is named.
- MailerService: the business mails (OTP verification, password reset,
  information and custom template mails).

OTPs are 6 digits, stored bcrypt-hashed, single use.
"""

import logging
import secrets
import smtplib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pymongo.database import Database

from stagora.core.auth import hash_password, verify_password
from stagora.core.config import Settings, get_settings
from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.services.mongo_service import utcnow

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

MAX_VERIFICATION_ATTEMPTS = 5
MAX_OTP_REQUESTS_PER_WINDOW = 5
OTP_REQUEST_WINDOW = timedelta(hours=1)
VERIFICATION_OTP_TTL = timedelta(hours=1)
PASSWORD_RESET_OTP_TTL = timedelta(minutes=5)
PASSWORD_RESET_VALIDITY = timedelta(minutes=10)


class MailerError(Exception):
    """Business failure of a mail flow; the message is safe to show."""


class AccountNotFoundError(MailerError):
    def __init__(self):
        super().__init__("User not found")


class RateLimitError(MailerError):
    def __init__(self):
        super().__init__("OTP rate limit exceeded. Try again later.")


# ============================================================
# PROVIDER
# ============================================================

@dataclass
class SendMailOptions:
    to: str
    subject: str
    template: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    html: Optional[str] = None
    from_address: Optional[str] = None
    reply_to: Optional[str] = None


@dataclass
class MailPayload:
    to: str
    subject: str
    from_address: str
    reply_to: Optional[str]
    template: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    html: Optional[str] = None


class MailerProvider:
    """Interface of mail transports."""

    def send_mail(self, options: SendMailOptions) -> None:
        raise NotImplementedError


class SmtpMailerProvider(MailerProvider):
    """SMTP transport (Gmail by default) with Jinja2 templates."""

    def __init__(self, settings: Optional[Settings] = None, templates_dir: Path = TEMPLATES_DIR):
        self.settings = settings or get_settings()
        self.default_from = self.settings.mail_default_from
        self.reply_to = self.settings.mail_from_email or None
        self.templates = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def build_payload(self, options: SendMailOptions) -> MailPayload:
        """Fill the defaults: sender, reply-to and body source."""
        payload = MailPayload(
            to=options.to,
            subject=options.subject,
            from_address=options.from_address or self.default_from,
            reply_to=options.reply_to or self.reply_to,
        )
        if options.template:
            payload.template = options.template
            payload.context = options.context or {}
        else:
            payload.html = options.html or (options.context or {}).get("html") or ""
        return payload

    def render(self, payload: MailPayload) -> str:
        if payload.template:
            # raises jinja2.TemplateNotFound for unknown names
            return self.templates.get_template(f"{payload.template}.html").render(**payload.context)
        return payload.html or ""

    def send_mail(self, options: SendMailOptions) -> None:
        """Send one mail. Failures are logged then re-raised unchanged."""
        try:
            payload = self.build_payload(options)
            message = EmailMessage()
            message["Subject"] = payload.subject
            message["From"] = payload.from_address
            message["To"] = payload.to
            if payload.reply_to:
                message["Reply-To"] = payload.reply_to
            message.set_content("This message requires an HTML capable mail client.")
            message.add_alternative(self.render(payload), subtype="html")

            with smtplib.SMTP(self.settings.mail_host, self.settings.mail_port, timeout=10) as server:
                if self.settings.mail_use_tls:
                    server.starttls()
                if self.settings.mail_user:
                    server.login(self.settings.mail_user, self.settings.mail_pass)
                server.send_message(message)
        except Exception:
            logger.exception("Failed to send mail to %s", options.to)
            raise


# ============================================================
# BUSINESS MAILS
# ============================================================

def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands datetimes back naive (UTC)
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MailerService:

    def __init__(
        self,
        db: Optional[Database] = None,
        provider: Optional[MailerProvider] = None,
        settings: Optional[Settings] = None,
    ):
        db = db if db is not None else get_mongo_db()
        self.users = db[COLLECTIONS["users"]]
        self.settings = settings or get_settings()
        self.provider = provider or SmtpMailerProvider(self.settings)

    @property
    def from_name(self) -> str:
        return self.settings.mail_from_name or "No-Reply"

    def _find_user(self, email: str) -> dict:
        user = self.users.find_one({"email": email.lower()})
        if not user:
            raise AccountNotFoundError()
        return user

    def _enforce_rate_limit(self, user: dict, now: datetime) -> int:
        """Count of OTP requests in the current window, after this one."""
        last = _aware(user.get("last_otp_request_at"))
        count = user.get("otp_request_count") or 0
        if last is None or now - last > OTP_REQUEST_WINDOW:
            count = 0
        if count >= MAX_OTP_REQUESTS_PER_WINDOW:
            raise RateLimitError()
        return count + 1

    def _issue_otp(self, email: str, prefix: str, ttl: timedelta, otp: Optional[str] = None) -> str:
        user = self._find_user(email)
        now = utcnow()
        request_count = self._enforce_rate_limit(user, now)

        otp = otp or generate_otp()
        self.users.update_one({"_id": user["_id"]}, {"$set": {
            f"{prefix}_code": hash_password(otp),
            f"{prefix}_expires": now + ttl,
            f"{prefix}_attempts": 0,
            "otp_request_count": request_count,
            "last_otp_request_at": now,
        }})
        return otp

    def send_verification_email(self, email: str, otp: Optional[str] = None) -> bool:
        """Account verification OTP, valid for 1 hour."""
        otp = self._issue_otp(email, "email_verification", VERIFICATION_OTP_TTL, otp)
        self.provider.send_mail(SendMailOptions(
            to=email.lower(),
            subject="Confirm your account",
            template="signup-confirmation",
            context={"otp": otp, "from_name": self.from_name},
        ))
        return True

    def send_password_reset_email(self, email: str, otp: Optional[str] = None) -> bool:
        """Password reset OTP, valid for 5 minutes."""
        otp = self._issue_otp(email, "password_reset", PASSWORD_RESET_OTP_TTL, otp)
        self.provider.send_mail(SendMailOptions(
            to=email.lower(),
            subject="Password reset request",
            template="reset-password",
            context={"otp": otp, "from_name": self.from_name},
        ))
        return True

    def send_info_email(self, email: str, title: str, message: str) -> bool:
        self.provider.send_mail(SendMailOptions(
            to=email.lower(),
            subject=title,
            template="info-message",
            context={"title": title, "message": message, "from_name": self.from_name},
        ))
        return True

    def send_account_ban_email(self, email: str, reason: Optional[str] = None) -> bool:
        message = "Your account has been suspended by an administrator."
        if reason:
            message += f" Reason: {reason}"
        return self.send_info_email(email, "Your account has been suspended", message)

    def send_custom_template_email(self, email: str, template_name: str) -> bool:
        self.provider.send_mail(SendMailOptions(
            to=email.lower(),
            subject=f"Notification from {self.from_name}",
            template=template_name,
            context={"from_name": self.from_name},
        ))
        return True

    def _check_otp(self, email: str, prefix: str, otp: str) -> dict:
        """
        Validate an OTP and consume it.

        Raises:
            MailerError "OTP expired", too many attempts, or "Invalid OTP"
        """
        user = self._find_user(email)
        code = user.get(f"{prefix}_code")
        expires = _aware(user.get(f"{prefix}_expires"))
        if not code or not expires:
            raise MailerError("No verification code set")

        cleared = {f"{prefix}_code": None, f"{prefix}_expires": None, f"{prefix}_attempts": 0}

        if utcnow() > expires:
            self.users.update_one({"_id": user["_id"]}, {"$set": cleared})
            raise MailerError("OTP expired")

        if (user.get(f"{prefix}_attempts") or 0) >= MAX_VERIFICATION_ATTEMPTS:
            self.users.update_one({"_id": user["_id"]}, {"$set": cleared})
            raise MailerError("Too many verification attempts. Please request a new code.")

        if not verify_password(otp, code):
            self.users.update_one({"_id": user["_id"]}, {"$inc": {f"{prefix}_attempts": 1}})
            raise MailerError("Invalid OTP")

        self.users.update_one({"_id": user["_id"]}, {"$set": cleared})
        return user

    def verify_signup_otp(self, email: str, otp: str) -> bool:
        user = self._check_otp(email, "email_verification", otp)
        self.users.update_one({"_id": user["_id"]}, {"$set": {"is_verified": True, "updated_at": utcnow()}})
        logger.info("User %s verified their email", user["_id"])
        return True

    def verify_password_reset_otp(self, email: str, otp: str) -> bool:
        user = self._check_otp(email, "password_reset", otp)
        self.users.update_one({"_id": user["_id"]}, {"$set": {"password_reset_verified_at": utcnow()}})
        return True

    def update_password(self, email: str, new_password: str) -> bool:
        """Requires a password reset OTP verified less than 10 minutes ago."""
        user = self._find_user(email)
        verified_at = _aware(user.get("password_reset_verified_at"))
        if verified_at is None:
            raise MailerError("Password reset not verified. Please verify OTP first.")
        if utcnow() - verified_at > PASSWORD_RESET_VALIDITY:
            raise MailerError("Password reset validation expired. Please verify OTP again.")

        self.users.update_one({"_id": user["_id"]}, {"$set": {
            "password_hash": hash_password(new_password),
            "password_reset_verified_at": None,
            "updated_at": utcnow(),
        }})
        logger.info("Password reset for user %s", user["_id"])
        return True


def get_mailer_service() -> MailerService:
    return MailerService()
