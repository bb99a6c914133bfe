"""
Mailer Routes

POST /mailer/password/forgot - Send a password reset code
POST /mailer/password/reset/verify-otp - Check the password reset code
POST /mailer/password/reset - Set the new password (after verify-otp)
POST /mailer/auth/send-verification - Send an account verification code
POST /mailer/auth/verify - Verify the account with its code
POST /mailer/send-template - Mail a named template to myself
"""

from fastapi import APIRouter, HTTPException, Depends
from jinja2 import TemplateNotFound

from stagora.core.auth import get_current_user
from stagora.services.mailer_service import (
    AccountNotFoundError, MailerError, MailerService, RateLimitError, get_mailer_service
)
from stagora.schemas.schemas import (
    EmailRequest, MessageResponse, ResetPasswordRequest, SendTemplateRequest, VerifyOtpRequest
)

router = APIRouter(prefix="/mailer", tags=["Mailer"])

NO_ACCOUNT = "No account found with this email"
TOO_MANY_REQUESTS = "Too many requests. Please try again later."


def _send_error(error: Exception, fallback: str) -> HTTPException:
    """Map a failure of an OTP sending flow."""
    if isinstance(error, AccountNotFoundError):
        return HTTPException(status_code=404, detail=NO_ACCOUNT)
    if isinstance(error, RateLimitError):
        return HTTPException(status_code=400, detail=TOO_MANY_REQUESTS)
    return HTTPException(status_code=400, detail=fallback)


def _verify_error(error: MailerError) -> HTTPException:
    if isinstance(error, AccountNotFoundError):
        return HTTPException(status_code=404, detail=NO_ACCOUNT)
    return HTTPException(status_code=400, detail=str(error))


@router.post("/password/forgot", response_model=MessageResponse)
async def forgot_password(data: EmailRequest, service: MailerService = Depends(get_mailer_service)):
    try:
        service.send_password_reset_email(data.email)
    except Exception as e:
        raise _send_error(e, "Failed to send password reset email")
    return MessageResponse(message="Password reset code sent to your email. Valid for 5 minutes.")


@router.post("/password/reset/verify-otp", response_model=MessageResponse)
async def verify_reset_otp(data: VerifyOtpRequest, service: MailerService = Depends(get_mailer_service)):
    try:
        service.verify_password_reset_otp(data.email, data.otp)
    except MailerError as e:
        raise _verify_error(e)
    return MessageResponse(message="OTP successfully verified")


@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, service: MailerService = Depends(get_mailer_service)):
    """The code must have been checked with verify-otp less than 10 minutes ago."""
    try:
        service.update_password(data.email, data.new_password)
    except MailerError as e:
        raise _verify_error(e)
    return MessageResponse(message="Password successfully reset")


@router.post("/auth/send-verification", response_model=MessageResponse)
async def send_verification(
    data: EmailRequest,
    user: dict = Depends(get_current_user),
    service: MailerService = Depends(get_mailer_service)
):
    try:
        service.send_verification_email(data.email)
    except Exception as e:
        raise _send_error(e, "Failed to send verification email")
    return MessageResponse(message="Verification code sent to your email. Valid for 1 hour.")


@router.post("/auth/verify", response_model=MessageResponse)
async def verify_account(
    data: VerifyOtpRequest,
    user: dict = Depends(get_current_user),
    service: MailerService = Depends(get_mailer_service)
):
    try:
        service.verify_signup_otp(data.email, data.otp)
    except MailerError as e:
        raise _verify_error(e)
    return MessageResponse(message="Account successfully verified")


@router.post("/send-template", response_model=MessageResponse)
async def send_template(
    data: SendTemplateRequest,
    user: dict = Depends(get_current_user),
    service: MailerService = Depends(get_mailer_service)
):
    try:
        service.send_custom_template_email(user["email"], data.template_name)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail=f"Template '{data.template_name}' not found")
    except Exception:
        raise HTTPException(status_code=400, detail="Failed to send email")
    return MessageResponse(message=f"Email sent using template '{data.template_name}'")
