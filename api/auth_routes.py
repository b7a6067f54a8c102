"""Authentication routes for chatdesk."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from auth.cookies import SessionCookieAdapter
from auth.database import UserDatabase
from auth.email_service import EmailService
from auth.models import PrincipalKind, StoreResult
from auth.tokens import TokenCodec, token_snippet
from config.settings import Settings

from .dependencies import (
    get_app_settings,
    get_cookies,
    get_email_service,
    get_token_codec,
    get_user_db,
)
from .errors import api_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

USER_RESET_MESSAGE = "Password reset email sent successfully"
ADMIN_RESET_MESSAGE = "Admin password reset email sent successfully"
RESEND_MESSAGE = "Verification code resent successfully"


class AuthRequest(BaseModel):
    """Base for auth bodies. Every field is optional so handlers can report what is missing."""

    model_config = ConfigDict(coerce_numbers_to_str=True, populate_by_name=True)


class EmailRequest(AuthRequest):
    email: Optional[EmailStr] = None


class CodeRequest(AuthRequest):
    email: Optional[EmailStr] = None
    code: Optional[str] = None


class SigninRequest(AuthRequest):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class SignupRequest(AuthRequest):
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")


class ResetPasswordRequest(AuthRequest):
    email: Optional[EmailStr] = None
    code: Optional[str] = None
    password: Optional[str] = None


def _code_issued(settings: Settings, message: str, code: Optional[str] = None) -> dict:
    """Success body for code-issuing routes; echoes the code only when enabled."""
    body = {"success": True, "message": message}
    if code and settings.codes_exposed:
        body["code"] = code
    return body


def _concealed(settings: Settings, result: StoreResult) -> bool:
    """
    Whether a failed lookup should be answered like a success.
    Cooldown refusals count too: repeat requests answer the same for every email.
    """
    return settings.conceal_account_existence and result.status in (403, 404, 429)


# ==================== Admin ====================


@router.post("/admin/signin")
async def admin_signin(
    payload: SigninRequest,
    response: Response,
    user_db: UserDatabase = Depends(get_user_db),
    codec: TokenCodec = Depends(get_token_codec),
    cookies: SessionCookieAdapter = Depends(get_cookies),
):
    """Check admin credentials and start a cookie session."""
    if not payload.email or not payload.password:
        raise api_error(400, "Email and password are required")

    try:
        admin, result = await user_db.authenticate_admin(payload.email, payload.password)
        if not admin:
            raise api_error(result.status, result.message)

        token = codec.issue(admin.id)
        cookies.attach(token, response)
        logger.info(f"Admin {admin.id} signed in, token {token_snippet(token)}")
        return {"success": True, "data": admin.to_public()}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Admin signin error: {e}")
        raise api_error(500, "Internal server error")


@router.post("/admin/forgot-password")
async def admin_forgot_password(
    payload: EmailRequest,
    settings: Settings = Depends(get_app_settings),
    user_db: UserDatabase = Depends(get_user_db),
    email_service: EmailService = Depends(get_email_service),
):
    return await _forgot_password(
        PrincipalKind.ADMIN, payload, settings, user_db, email_service,
        message=ADMIN_RESET_MESSAGE, include_code=True,
    )


@router.post("/admin/verify-reset-code")
async def admin_verify_reset_code(
    payload: CodeRequest, user_db: UserDatabase = Depends(get_user_db)
):
    return await _verify_reset_code(PrincipalKind.ADMIN, payload, user_db)


@router.post("/admin/reset-password")
async def admin_reset_password(
    payload: ResetPasswordRequest, user_db: UserDatabase = Depends(get_user_db)
):
    return await _reset_password(PrincipalKind.ADMIN, payload, user_db)


# ==================== User ====================


@router.post("/user/signup")
async def user_signup(
    payload: SignupRequest,
    settings: Settings = Depends(get_app_settings),
    user_db: UserDatabase = Depends(get_user_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Register a user and email them a verification code."""
    if not (payload.email and payload.username and payload.password and payload.confirm_password):
        raise api_error(400, "Email, username, password and confirmPassword are required")

    email = payload.email.lower()
    try:
        result = await user_db.create_user(
            email, payload.username, payload.password, payload.confirm_password
        )
        if not result.ok:
            raise api_error(result.status, result.message)

        if result.code and not await email_service.send_verification_code(email, result.code):
            logger.warning(f"Verification email to {email} was not delivered")
        return _code_issued(settings, result.message, result.code)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup error: {e}")
        raise api_error(500, "Internal server error")


@router.post("/user/signin")
async def user_signin(
    payload: SigninRequest,
    response: Response,
    user_db: UserDatabase = Depends(get_user_db),
    codec: TokenCodec = Depends(get_token_codec),
    cookies: SessionCookieAdapter = Depends(get_cookies),
):
    """Check user credentials and start a cookie session."""
    if not payload.email or not payload.password:
        raise api_error(400, "Email and password are required")

    email = payload.email.lower()
    try:
        user, result = await user_db.authenticate_user(email, payload.password)
        if not user:
            if result.status == 403:
                raise HTTPException(
                    status_code=403,
                    detail={
                        "success": False,
                        "error": result.message,
                        "needsVerification": True,
                        "email": email,
                    },
                )
            raise api_error(result.status, result.message)

        token = codec.issue(user.id)
        cookies.attach(token, response)
        logger.info(f"User {user.id} signed in, token {token_snippet(token)}")
        profile = await user_db.get_user_profile(user.id)
        return {
            "success": True,
            "data": {"user": profile, "token": token},
            "message": "Signed in successfully",
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signin error: {e}")
        raise api_error(500, "Internal server error")


@router.post("/user/signout")
@router.post("/admin/signout")
async def signout(response: Response, cookies: SessionCookieAdapter = Depends(get_cookies)):
    """Expire the session cookie. Tokens are stateless, so there is nothing else to revoke."""
    cookies.clear(response)
    return {"success": True, "message": "Signed out successfully"}


@router.post("/user/forgot-password")
async def user_forgot_password(
    payload: EmailRequest,
    settings: Settings = Depends(get_app_settings),
    user_db: UserDatabase = Depends(get_user_db),
    email_service: EmailService = Depends(get_email_service),
):
    return await _forgot_password(
        PrincipalKind.USER, payload, settings, user_db, email_service,
        message=USER_RESET_MESSAGE, include_code=False,
    )


@router.post("/user/resend-verification")
async def user_resend_verification(
    payload: EmailRequest,
    settings: Settings = Depends(get_app_settings),
    user_db: UserDatabase = Depends(get_user_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Issue a new signup code, replacing the previous one."""
    if not payload.email:
        raise api_error(400, "Email is required")

    email = payload.email.lower()
    try:
        result = await user_db.generate_user_verification_code(email)
        if not result.ok:
            if _concealed(settings, result):
                logger.info(f"Verification resend for {email} not sent ({result.status})")
                return _code_issued(settings, RESEND_MESSAGE)
            raise api_error(result.status, result.message)

        if not await email_service.send_verification_code(email, result.code):
            logger.warning(f"Verification email to {email} was not delivered")
        return _code_issued(settings, RESEND_MESSAGE, result.code)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Resend verification error: {e}")
        raise api_error(500, "Failed to resend verification code")


@router.post("/user/verify")
async def user_verify(payload: CodeRequest, user_db: UserDatabase = Depends(get_user_db)):
    """Verify the signup code and mark the user verified."""
    if not payload.email:
        raise api_error(400, "Email is required")
    if not payload.code:
        raise api_error(400, "Verification code is required")

    try:
        user, result = await user_db.verify_user(payload.email.lower(), payload.code)
        if not user:
            raise api_error(result.status, result.message)

        return {
            "success": True,
            "message": result.message,
            "data": await user_db.get_user_profile(user.id),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Verification error: {e}")
        raise api_error(500, "Internal server error")


@router.post("/user/verify-reset-code")
async def user_verify_reset_code(
    payload: CodeRequest, user_db: UserDatabase = Depends(get_user_db)
):
    return await _verify_reset_code(PrincipalKind.USER, payload, user_db)


@router.post("/user/reset-password")
async def user_reset_password(
    payload: ResetPasswordRequest, user_db: UserDatabase = Depends(get_user_db)
):
    return await _reset_password(PrincipalKind.USER, payload, user_db)


# ==================== Shared flows ====================


async def _forgot_password(
    kind: PrincipalKind,
    payload: EmailRequest,
    settings: Settings,
    user_db: UserDatabase,
    email_service: EmailService,
    message: str,
    include_code: bool,
) -> dict:
    """Issue a reset code for the principal and email it with a reset link."""
    if not payload.email:
        raise api_error(400, "Email is required")

    email = payload.email.lower()
    try:
        result = await user_db.generate_password_reset_code(kind, email)
        if not result.ok:
            if _concealed(settings, result):
                logger.info(f"Password reset for {kind.value} {email} not sent ({result.status})")
                return _code_issued(settings, message)
            raise api_error(result.status, result.message)

        if not await email_service.send_password_reset_code(email, result.code, kind):
            logger.warning(f"Password reset email to {email} was not delivered")
        return _code_issued(settings, message, result.code if include_code else None)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Forgot password error ({kind.value}): {e}")
        raise api_error(500, "Failed to process forgot password request")


async def _verify_reset_code(kind: PrincipalKind, payload: CodeRequest, user_db: UserDatabase) -> dict:
    if not payload.email or not payload.code:
        raise api_error(400, "Email and code are required")

    try:
        result = await user_db.verify_reset_code(kind, payload.email.lower(), payload.code)
        if not result.ok:
            raise api_error(result.status, result.message)
        return {"success": True, "message": result.message}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Verify reset code error ({kind.value}): {e}")
        raise api_error(500, "Internal server error")


async def _reset_password(
    kind: PrincipalKind, payload: ResetPasswordRequest, user_db: UserDatabase
) -> dict:
    if not payload.email or not payload.code or not payload.password:
        raise api_error(400, "Email, code and password are required")

    try:
        result = await user_db.reset_password(
            kind, payload.email.lower(), payload.code, payload.password
        )
        if not result.ok:
            raise api_error(result.status, result.message)
        return {"success": True, "message": result.message}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Reset password error ({kind.value}): {e}")
        raise api_error(500, "Internal server error")
